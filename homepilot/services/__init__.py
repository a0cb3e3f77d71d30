"""Application services: stores, learning worker, interpreter and synchronizer."""
