import json
import os
from typing import Dict, Any, Optional

# run parameters and their defaults, shared by the JSON config and the CLI
DEFAULT_PARAMETERS: Dict[str, Any] = {
    "use_triangles": True,
    "use_circles": False,
    "max_shapes": 64,
    "initial_shapes": 1,
    "mutation_rate": 200,
    "restart": False,
    "seed": None,
}

_BOOL_PARAMETERS = ("use_triangles", "use_circles", "restart")
_INT_PARAMETERS = ("max_shapes", "initial_shapes", "mutation_rate")

MAX_MUTATION_RATE = 1000


class ConfigLoader:
    """
    Loads and validates run configurations from JSON files

    A run configuration is a flat JSON object whose keys are a subset of
    `DEFAULT_PARAMETERS`. Values given on the command line take precedence
    over the file, which takes precedence over the defaults
    """

    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        """
        Initializes the ConfigLoader

        :param defaults: Parameter defaults, `DEFAULT_PARAMETERS` when omitted
        :type defaults: Optional[Dict[str, Any]]
        """
        self.defaults = dict(DEFAULT_PARAMETERS if defaults is None else defaults)

    def load_run_config(self, filepath: str) -> Dict[str, Any]:
        """
        Loads a run configuration file

        :param filepath: Path to the JSON configuration file
        :type filepath: str
        :raises FileNotFoundError: If the file is not found
        :raises ValueError: If the JSON is invalid or holds unknown or mistyped keys
        :return: The validated configuration, booleans normalized
        :rtype: Dict[str, Any]
        """
        if not os.path.exists(filepath):
            raise FileNotFoundError(f"Could not find run configuration file: {filepath}")

        with open(filepath, "r") as f:
            try:
                config = json.load(f)
            except json.JSONDecodeError:
                raise ValueError(f"Invalid JSON in run configuration file: {filepath}")

        return self._validate_run_config(config, filepath)

    def _validate_run_config(self, config: Any, filepath: str) -> Dict[str, Any]:
        """
        Checks keys and value types of a loaded run configuration

        Boolean options accept JSON booleans or the integers 0 and 1

        :param config: The decoded JSON document
        :type config: Any
        :param filepath: The path of the file (used for error messages)
        :type filepath: str
        :raises ValueError: If the configuration is invalid
        :return: The validated configuration
        :rtype: Dict[str, Any]
        """
        if not isinstance(config, dict):
            raise ValueError(f"Run configuration must be a JSON object: {filepath}")

        validated = {}
        for key, value in config.items():
            if key not in self.defaults:
                raise ValueError(f"Unknown option '{key}' in run configuration: {filepath}")
            if key in _BOOL_PARAMETERS:
                if value not in (True, False, 0, 1) or isinstance(value, float):
                    raise ValueError(
                        f"Option '{key}' must be a boolean or 0/1: {filepath}"
                    )
                value = bool(value)
            elif key == "seed" and value is None:
                pass
            elif isinstance(value, bool) or not isinstance(value, int):
                # bool is an int subclass, but "max_shapes": true is a mistake
                raise ValueError(f"Option '{key}' must be an integer: {filepath}")
            validated[key] = value
        return validated

    def merge(
        self,
        file_config: Optional[Dict[str, Any]] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Combines defaults, a loaded configuration and explicit overrides, then sanitizes

        :param file_config: Validated configuration loaded from a file
        :type file_config: Optional[Dict[str, Any]]
        :param overrides: Options given explicitly on the command line
        :type overrides: Optional[Dict[str, Any]]
        :raises ValueError: If the combined parameters are out of range
        :return: The final run parameters
        :rtype: Dict[str, Any]
        """
        params = dict(self.defaults)
        params.update(file_config or {})
        params.update(overrides or {})
        return sanitize_parameters(params)


def sanitize_parameters(params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Applies the startup sanity rules to run parameters

    The shape cap is raised to the initial shape count when it is smaller,
    the mutation rate is clamped to [0, 1000] and shape counts must be positive

    :param params: Run parameters, modified copy is returned
    :type params: Dict[str, Any]
    :raises ValueError: If a shape count is below 1
    :return: The sanitized parameters
    :rtype: Dict[str, Any]
    """
    params = dict(params)
    if params["max_shapes"] < 1:
        raise ValueError(f"max_shapes must be at least 1, got {params['max_shapes']}")
    if params["initial_shapes"] < 1:
        raise ValueError(
            f"initial_shapes must be at least 1, got {params['initial_shapes']}"
        )
    if params["initial_shapes"] > params["max_shapes"]:
        params["max_shapes"] = params["initial_shapes"]
    params["mutation_rate"] = max(0, min(MAX_MUTATION_RATE, params["mutation_rate"]))
    params["use_triangles"] = bool(params["use_triangles"])
    params["use_circles"] = bool(params["use_circles"])
    params["restart"] = bool(params["restart"])
    return params
