from .sqlalchemy_commitment_repository import SqlAlchemyCommitmentRepository

__all__ = ["SqlAlchemyCommitmentRepository"]
