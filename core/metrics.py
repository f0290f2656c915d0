import numpy as np
from numba import njit

# largest possible distance between two RGB pixels, sqrt(3 * 255^2) ~ 441.67
# rounded up so scores stay strictly inside [0, 100]
MAX_PIXEL_DISTANCE = 442.0


@njit(fastmath=True)
def _total_distance(image1: np.ndarray, image2: np.ndarray) -> np.float64:
    """
    Sums the Euclidean RGB distance of every pair of co-located pixels

    :param image1: The first image (HxWx3, uint8)
    :type image1: np.ndarray
    :param image2: The second image (HxWx3, uint8)
    :type image2: np.ndarray
    :return: Total distance over the whole image
    :rtype: np.float64
    """
    total = np.float64(0.0)
    height, width = image1.shape[0], image1.shape[1]
    for y in range(height):
        for x in range(width):
            dr = np.float64(image1[y, x, 0]) - np.float64(image2[y, x, 0])
            dg = np.float64(image1[y, x, 1]) - np.float64(image2[y, x, 1])
            db = np.float64(image1[y, x, 2]) - np.float64(image2[y, x, 2])
            total += np.sqrt(dr * dr + dg * dg + db * db)
    return total


def total_distance(image1: np.ndarray, image2: np.ndarray) -> float:
    if image1.shape != image2.shape:
        raise ValueError(
            f"Image shapes differ: {image1.shape} vs {image2.shape}"
        )
    return float(_total_distance(image1, image2))


def score(rendered: np.ndarray, target: np.ndarray) -> float:
    """
    Calculates the percentage difference between two RGB images

    The total pixel distance is divided by the worst case
    (`width * height * MAX_PIXEL_DISTANCE`) and scaled to a percentage:
    0 is a perfect match, 100 the maximum possible difference. The score is
    symmetric in its two arguments

    :param rendered: The rendered candidate (HxWx3, uint8)
    :type rendered: np.ndarray
    :param target: The target image (HxWx3, uint8)
    :type target: np.ndarray
    :raises ValueError: If the images do not have the same shape
    :return: Difference in [0, 100], lower is better
    :rtype: float
    """
    height, width = target.shape[:2]
    total = total_distance(rendered, target)
    return total / (width * height * MAX_PIXEL_DISTANCE) * 100.0
