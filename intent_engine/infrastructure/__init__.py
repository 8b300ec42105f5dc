"""
Infrastructure layer: the text processor and network, MongoDB access, and
storage implementations.
"""
