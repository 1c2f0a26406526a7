from dataclasses import dataclass
from typing import TYPE_CHECKING

from dynalysis.algorithms.types.core import _DynalysisBaseConfig

if TYPE_CHECKING:
    from dynalysis.algorithms.linalg.types import _SystemType


@dataclass(frozen=True)
class _EigenDecompositionConfig(_DynalysisBaseConfig):
    """Configuration of the eigenvalue classification.

    Parameters
    ----------
    system_type : :class:`~dynalysis.algorithms.linalg.types._SystemType`
        Continuous (eigenvalues of a Jacobian) or discrete (Floquet
        multipliers of a monodromy matrix).
    delta : float, default 1e-6
        Half-width of the band around the stability boundary whose
        eigenvalues are classified as center.
    """
    system_type: "_SystemType"
    delta: float = 1e-6

    def _validate(self) -> None:
        if self.delta < 0.0:
            raise ValueError(f"delta must be non-negative, got {self.delta}")
