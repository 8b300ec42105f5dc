"""
Domain layer of the intent engine.

Holds the intent and training models, the persistence schema, the storage
interfaces the engine depends on, and the classifier service.
"""
