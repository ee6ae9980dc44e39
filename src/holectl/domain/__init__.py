"""Domain layer — descriptor models and pure evaluation logic.

Nothing here touches the filesystem, subprocesses or the network.
"""
