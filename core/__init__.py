"""Core processing modules package.

This package contains the contract analysis pipeline:
- decomposition: clause segmentation
- workers: clause classification backends
- embeddings: embedding providers
- retrieval: similarity index and precedent clause library
- aggregation: document-level risk scoring
- pipeline: orchestration, retries and contract status tracking
- filtering: LLM response reliability checks
- cost_tracker: cost calculation and logging utilities
"""
