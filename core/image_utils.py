import imageio.v3 as iio
import numpy as np
import os


def _to_uint8(img: np.ndarray) -> np.ndarray:
    if img.dtype == np.uint8:
        return img
    if np.issubdtype(img.dtype, np.floating):
        # float images are taken to be in [0, 1]
        return (np.clip(img, 0.0, 1.0) * 255.0).astype(np.uint8)
    # wider integer types (uint16 and friends) are clipped
    return np.clip(img, 0, 255).astype(np.uint8)


def load_image(image_path: str) -> np.ndarray:
    """
    Loads an image with imageio and returns it as a packed RGB uint8 buffer

    Grayscale images are expanded to three equal channels and any alpha
    channel is discarded, so the result is always HxWx3, row-major, with
    no padding

    :param image_path: Path to the image file
    :type image_path: str
    :raises FileNotFoundError: If the image file does not exist
    :raises ValueError: If the file cannot be decoded or has an unsupported layout
    :return: The RGB image (HxWx3, uint8)
    :rtype: np.ndarray
    """
    if not os.path.exists(image_path):
        raise FileNotFoundError(f"Image file not found: {image_path}")
    try:
        img = iio.imread(image_path)
    except Exception as e:
        # imageio raises a variety of plugin-specific errors on bad input
        raise ValueError(f"Error loading image: {e}") from e

    img = _to_uint8(np.asarray(img))

    if img.ndim == 2:  # grayscale (H, W)
        img = np.stack([img, img, img], axis=-1)
    elif img.ndim == 3 and img.shape[2] == 4:  # rgba (H, W, 4)
        img = img[:, :, :3]
    elif not (img.ndim == 3 and img.shape[2] == 3):
        raise ValueError(
            f"Unsupported image format (dims/channels): {image_path}, shape={img.shape}, dtype={img.dtype}"
        )
    if img.shape[0] == 0 or img.shape[1] == 0:
        raise ValueError(f"Image has no pixels: {image_path}")
    # the rasterizer and metric expect a C-contiguous buffer
    return np.ascontiguousarray(img)


def save_image(image: np.ndarray, filepath: str):
    """
    Saves an RGB buffer to disk with imageio, creating the directory if needed

    :param image: The image to save (HxWx3)
    :type image: np.ndarray
    :param filepath: Destination path; the extension selects the format
    :type filepath: str
    :raises OSError: If there is an error writing the file
    """
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    try:
        iio.imwrite(filepath, _to_uint8(image))
    except Exception as e:
        raise OSError(f"Error saving image to {filepath}: {e}") from e
