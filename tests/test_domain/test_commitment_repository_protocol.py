"""Tests for the CommitmentRepository protocol and ProofVerifier/TextExtractor ports."""


class TestCommitmentRepositoryProtocol:
    def test_protocol_is_runtime_checkable(self):
        from commitbot.domain.repositories import CommitmentRepository

        assert getattr(CommitmentRepository, "_is_runtime_protocol", False)

    def test_sqlalchemy_repository_conforms(self):
        from commitbot.domain.repositories import CommitmentRepository
        from commitbot.infrastructure.repositories import SqlAlchemyCommitmentRepository

        assert isinstance(SqlAlchemyCommitmentRepository(session=None), CommitmentRepository)

    def test_structural_subtyping_rejects_non_conforming_class(self):
        from commitbot.domain.repositories import CommitmentRepository

        class BadRepo:
            async def add(self, commitment):
                return commitment

        assert not isinstance(BadRepo(), CommitmentRepository)


class TestPorts:
    def test_verification_service_is_a_proof_verifier(self):
        from commitbot.domain.interfaces import ProofVerifier
        from commitbot.services.verification_service import VerificationService

        assert isinstance(VerificationService(), ProofVerifier)

    def test_ocr_service_is_a_text_extractor(self):
        from commitbot.domain.interfaces import TextExtractor
        from commitbot.services.ocr_service import OCRService

        assert isinstance(OCRService(), TextExtractor)

    def test_fake_verifier_accepted(self):
        from commitbot.domain.interfaces import ProofVerifier

        class FakeVerifier:
            async def verify(self, commitment_text, extracted_text, image_url):
                return None

        assert isinstance(FakeVerifier(), ProofVerifier)
