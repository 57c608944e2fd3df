from .commitment_repository import CommitmentRepository

__all__ = ["CommitmentRepository"]
