"""Cluster recentering and B allele frequency / log R ratio projection.

Clusters and samples are mapped to polar coordinates (theta in [0, 1],
r the total intensity) and BAF/LRR are interpolated between the AA, AB
and BB cluster centers, as in PennCNV's normalize_affy_geno_cluster.pl.
"""

from dataclasses import dataclass

import numpy as np

from affy2vcf.models import Call, ModelDialect, SnpModel

# Weight of the stored cluster means when recentering on observed samples
PRIOR_WEIGHT = 0.2


@dataclass(frozen=True)
class ClusterCoordinates:
    """Polar coordinates of the three cluster centers."""

    aa_theta: float
    ab_theta: float
    bb_theta: float
    aa_r: float
    ab_r: float
    bb_r: float


def adjust_clusters(
    model: SnpModel,
    genotypes: np.ndarray,
    x: np.ndarray,
    y: np.ndarray,
) -> SnpModel:
    """Recenter cluster means on the observed samples.

    Each cluster mean becomes (0.2 * prior + sum of its samples) / (0.2 + n)
    where n is the number of samples called in that cluster. Clusters with no
    calls keep the scaled prior divided by the prior weight alone.

    Args:
        model: Stored cluster model (not modified)
        genotypes: Per-sample calls (Call values)
        x: First dimension (norm_x for birdseed, delta for brlmm-p)
        y: Second dimension (norm_y for birdseed, size for brlmm-p)

    Returns:
        New model with recentered means and updated mean strengths
    """
    adjusted = model.copy()
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    for call, cluster in ((Call.AA, adjusted.aa), (Call.AB, adjusted.ab), (Call.BB, adjusted.bb)):
        mask = genotypes == call
        k = PRIOR_WEIGHT + int(mask.sum())
        cluster.xm = (cluster.xm * PRIOR_WEIGHT + float(x[mask].sum())) / k
        cluster.ym = (cluster.ym * PRIOR_WEIGHT + float(y[mask].sum())) / k
        cluster.k = k
    return adjusted


def cluster_polar_coordinates(model: SnpModel, dialect: ModelDialect) -> ClusterCoordinates:
    """Map the cluster centers of a model to (theta, r).

    Birdseed means are signal intensities: theta = atan(ym / xm) * 2 / pi and
    r = xm + ym. Brlmm-p means are (log2 ratio, mean log2 intensity):
    theta = atan(2^-xm) * 2 / pi and r = 2^ym * 2 * cosh(xm * ln2 / 2).
    Haploid models get their AB center at the midpoint of AA and BB.
    """
    means = np.array(
        [[c.xm, c.ym] for c in (model.aa, model.ab, model.bb)], dtype=np.float64
    )
    xm, ym = means[:, 0], means[:, 1]
    with np.errstate(divide="ignore", invalid="ignore"):
        if dialect is ModelDialect.BIRDSEED:
            theta = np.arctan(ym / xm) * (2.0 / np.pi)
            r = xm + ym
        else:
            theta = np.arctan(np.exp2(-xm)) * (2.0 / np.pi)
            r = np.exp2(ym) * 2.0 * np.cosh(xm * 0.5 * np.log(2.0))

    if model.copy_number == 1:
        theta[1] = (theta[0] + theta[2]) * 0.5
        r[1] = (r[0] + r[2]) * 0.5

    return ClusterCoordinates(
        aa_theta=float(theta[0]),
        ab_theta=float(theta[1]),
        bb_theta=float(theta[2]),
        aa_r=float(r[0]),
        ab_r=float(r[1]),
        bb_r=float(r[2]),
    )


def sample_polar_coordinates(norm_x: np.ndarray, norm_y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Map normalized sample intensities to (theta, r).

    Example:
        >>> theta, r = sample_polar_coordinates(np.array([1.0]), np.array([1.0]))
        >>> float(theta[0]), float(r[0])
        (0.5, 2.0)
    """
    norm_x = np.asarray(norm_x, dtype=np.float64)
    norm_y = np.asarray(norm_y, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        theta = np.arctan(norm_y / norm_x) * (2.0 / np.pi)
    return theta, norm_x + norm_y


def interpolate_baf_lrr(
    theta: np.ndarray,
    r: np.ndarray,
    clusters: ClusterCoordinates,
) -> tuple[np.ndarray, np.ndarray]:
    """Interpolate BAF and LRR of samples against three cluster centers.

    Below the AB theta the sample is placed on the AA-AB segment, above it
    on the AB-BB segment. BAF is the linear position along theta (0 at AA,
    0.5 at AB, 1 at BB) clamped to [0, 1]. The expected r is the same
    linear interpolation of the cluster r values, extrapolated outside the
    cluster range, and LRR = log2(r / expected r).

    Returns:
        (baf, lrr) as float32 arrays; NaN where the inputs are undefined
    """
    theta = np.asarray(theta, dtype=np.float64)
    r = np.asarray(r, dtype=np.float64)
    c = clusters

    lower = theta < c.ab_theta
    with np.errstate(divide="ignore", invalid="ignore"):
        # AA-AB segment
        frac_low = (theta - c.aa_theta) / (c.ab_theta - c.aa_theta)
        baf_low = frac_low * 0.5
        r_low = c.aa_r + frac_low * (c.ab_r - c.aa_r)
        # AB-BB segment
        frac_high = (theta - c.ab_theta) / (c.bb_theta - c.ab_theta)
        baf_high = 0.5 + frac_high * 0.5
        r_high = c.ab_r + frac_high * (c.bb_r - c.ab_r)

        baf = np.where(lower, baf_low, baf_high)
        r_ref = np.where(lower, r_low, r_high)

        at_ab = theta == c.ab_theta
        baf = np.where(at_ab, 0.5, baf)
        r_ref = np.where(at_ab, c.ab_r, r_ref)

        baf = np.clip(baf, 0.0, 1.0)
        lrr = np.log2(r / r_ref)

    undefined = np.isnan(theta) | np.isnan(r)
    baf[undefined] = np.nan
    lrr[undefined] = np.nan
    return baf.astype(np.float32), lrr.astype(np.float32)


def compute_baf_lrr(
    norm_x: np.ndarray,
    norm_y: np.ndarray,
    model: SnpModel,
    dialect: ModelDialect,
) -> tuple[np.ndarray, np.ndarray]:
    """Compute per-sample BAF and LRR for one probe set.

    Args:
        norm_x: Normalized A intensities
        norm_y: Normalized B intensities
        model: Cluster model (adjusted if recentering is enabled)
        dialect: Space the model means live in

    Returns:
        (baf, lrr) float32 arrays, one value per sample
    """
    clusters = cluster_polar_coordinates(model, dialect)
    theta, r = sample_polar_coordinates(norm_x, norm_y)
    return interpolate_baf_lrr(theta, r, clusters)
