"""Data adapters for the heatmap engine.

Modules:
    articles    — Recent articles from the ``news_articles`` SQLite table
    openrouter  — OpenRouter chat-completions client for event labels
"""
