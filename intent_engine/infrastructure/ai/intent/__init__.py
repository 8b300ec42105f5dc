"""
Intent classification components.

This package provides the text processing pipeline and the single-layer
softmax network that maps utterances to intents. Features include:
- Stop-word filtering, suffix stemming and bounded vocabularies
- Term-frequency feature vectors tied to a vocabulary version
- Per-example gradient descent training with cross-entropy loss
- Top-K prediction and versioned model records
"""
