"""
Domain Services Package.

Contains the classifier service, which coordinates training, persistence,
inference and analytics around the intent network.
"""
