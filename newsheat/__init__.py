"""
Newsheat — news clustering and heat-scoring engine.

Submodules:
    config      — Environment-backed constants
    models      — Articles, labels, clusters, results, timelines
    tokenizer   — Token extraction, category/topic normalization, Jaccard
    weighting   — Per-article salience weight
    labeling    — LLM event labeling with a local empty-response breaker
    clustering  — Cluster assignment, key stabilization, merging
    finalize    — Heat, velocity, trend, urgency, sentiment per cluster
    state_store — SQLite current-state and history tables
    timeline    — Fixed-width heat history buckets
    service     — Build pipeline, result cache, request coalescing
    database    — Shared SQLite handle
    cache       — cashews result cache setup
    data.articles   — news_articles reader
    data.openrouter — OpenRouter labeling backend
"""
