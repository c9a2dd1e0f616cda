from unzipper.store.client import ArtifactStoreClient

__all__ = ["ArtifactStoreClient"]
