from __future__ import annotations

from .records import RecordRef


class PoolReviewError(RuntimeError):
    pass


class StoreError(PoolReviewError):
    pass


class RepositoryError(PoolReviewError):
    pass


class DocumentError(PoolReviewError):
    pass


class RenderError(PoolReviewError):
    pass


class ConfigError(ValueError):
    pass


class CyclicDerivation(ValueError):
    def __init__(self, ref: RecordRef, chain: tuple[RecordRef, ...] = ()) -> None:
        self.ref = ref
        self.chain = chain
        path = " -> ".join(r.uuid for r in chain + (ref,)) if chain else ref.uuid
        super().__init__(f"cyclic derivation at part {ref.uuid}: {path}")
