import sys
import datetime
import numpy as np
from typing import Dict, Any, List, Optional, Tuple

from utils.config_loader import ConfigLoader, DEFAULT_PARAMETERS
import core.image_utils as image_utils
from core.optimizers import EngineState, Optimizer, EXPORT_INTERVAL
from core.shape_set import ShapeSet
from utils.shape_io import CheckpointError, load_checkpoint, save_checkpoint, save_svg


class App:
    """
    Main application class for shapeme

    Collects run parameters, loads the target image and any previous
    checkpoint, drives the optimizer and periodically exports the best
    shapes found so far
    """

    def __init__(self):
        """
        Initializes the App class

        Sets up the error message slot and a stop flag that ends the
        optimization loop when set to 1
        """
        self.error_message = ""
        self.config_loader = ConfigLoader()
        self.optimizer: Optional[Optimizer] = None
        # 0 = run, 1 = stop requested
        self.stop_flag = np.array([0], dtype=np.int8)

    def run_cli(self, args) -> int:
        """
        Runs the application in Command Line Interface (CLI) mode

        Configuration, image and checkpoint problems are fatal: they are
        reported and the run ends with a non-zero status

        :param args: Parsed command line arguments
        :type args: argparse.Namespace
        :return: Process exit status
        :rtype: int
        """
        params = self.collect_parameters_cli(args)
        if params is None:
            print(f"Error: {self.error_message}")
            return 1
        prepared_data = self.prepare_data(params)
        if prepared_data is None:
            print(f"Error: {self.error_message}")
            return 1
        if not self.run_evolution(params, prepared_data):
            print(f"Error: {self.error_message}")
            return 1
        return 0

    def collect_parameters_cli(self, args) -> Optional[Dict[str, Any]]:
        """
        Merges defaults, the optional JSON run configuration and explicit CLI options

        :param args: Parsed command line arguments from `argparse`
        :type args: argparse.Namespace
        :return: A dictionary of parameters for the run, or None if an error occurs
        :rtype: Optional[Dict[str, Any]]
        """
        self.error_message = ""
        args_dict = vars(args)
        try:
            file_config = {}
            if args_dict.get("config"):
                file_config = self.config_loader.load_run_config(args_dict["config"])
            overrides = {
                key: args_dict[key]
                for key in DEFAULT_PARAMETERS
                if args_dict.get(key) is not None
            }
            params = self.config_loader.merge(file_config, overrides)
        except (FileNotFoundError, ValueError) as e:
            self.error_message = str(e)
            return None

        params["image_path"] = args_dict["image"]
        params["checkpoint_path"] = args_dict["checkpoint"]
        params["svg_path"] = args_dict["svg"]
        params["preview_path"] = args_dict.get("preview")
        params["generations"] = args_dict.get("generations")
        return params

    def prepare_data(
        self, params: Dict[str, Any]
    ) -> Optional[Tuple[np.ndarray, ShapeSet, EngineState, np.random.Generator]]:
        """
        Loads the target image and builds the starting shape set and engine state

        Unless a restart is requested the checkpoint is loaded when present;
        otherwise the run starts from `initial_shapes` random shapes

        :param params: Run parameters from `collect_parameters_cli`
        :type params: Dict[str, Any]
        :return: (target image, starting set, engine state, random generator),
                 or None if an error occurs
        :rtype: Optional[Tuple[np.ndarray, ShapeSet, EngineState, np.random.Generator]]
        """
        self.error_message = ""
        try:
            target = image_utils.load_image(params["image_path"])
        except (FileNotFoundError, ValueError) as e:
            self.error_message = f"Can't load the specified image: {e}"
            return None
        image_shape = target.shape[:2]
        print(f"Image {image_shape[1]}x{image_shape[0]} loaded from {params['image_path']}")

        rng = np.random.default_rng(params["seed"])
        max_shapes = params["max_shapes"]
        kinds = (params["use_triangles"], params["use_circles"])

        loaded = None
        if not params["restart"]:
            try:
                loaded = load_checkpoint(params["checkpoint_path"], max_shapes)
            except (CheckpointError, OSError) as e:
                self.error_message = f"Error loading the checkpoint file: {e}"
                return None

        if loaded is not None:
            state, shapes = loaded
            print(f"Loaded {len(shapes)} shapes from {params['checkpoint_path']}")
            best = ShapeSet.from_shapes(shapes, max_shapes, rng, image_shape, *kinds)
        else:
            state = EngineState(
                capacity_cap=max_shapes, active_budget=params["initial_shapes"]
            )
            best = ShapeSet.initialize_random(
                rng, max_shapes, image_shape, params["initial_shapes"], *kinds
            )
        return target, best, state, rng

    def run_evolution(
        self,
        params: Dict[str, Any],
        prepared_data: Tuple[np.ndarray, ShapeSet, EngineState, np.random.Generator],
    ) -> bool:
        """
        Runs the optimization loop until interrupted or `generations` is reached

        Every accepted generation is reported on the console; every
        `EXPORT_INTERVAL` generations the absolute best set is written to the
        SVG and checkpoint files. A final export happens when the loop ends,
        including on Ctrl-C

        :param params: Run parameters
        :type params: Dict[str, Any]
        :param prepared_data: Output of `prepare_data`
        :type prepared_data: Tuple
        :return: True on success, False if an export failed
        :rtype: bool
        """
        target, best, state, rng = prepared_data
        self.stop_flag[0] = 0
        self.optimizer = Optimizer(
            target,
            best,
            state,
            rng=rng,
            mutation_rate=params["mutation_rate"],
            stop_flag=self.stop_flag,
        )
        optimizer = self.optimizer

        print("\nStarting Evolution")
        print(
            f" Triangles: {int(params['use_triangles'])}, Circles: {int(params['use_circles'])}"
        )
        print(
            f" Max Shapes: {state.capacity_cap}, Active Budget: {state.active_budget}, "
            f"Mutation Rate: {params['mutation_rate']}"
        )
        print(f" Generation: {state.generation}, Temperature: {state.temperature:f}")
        print("-----------------------------")

        start_time = datetime.datetime.now()
        try:
            for result in optimizer.run(params["generations"]):
                if result.accepted:
                    print(
                        f"Diff is {result.diff:f}% (inuse:{optimizer.best.active_count}, "
                        f"max:{state.active_budget}, gen:{result.generation}, "
                        f"temp:{state.temperature:f})"
                    )
                if result.generation % EXPORT_INTERVAL == 0:
                    self.save_outputs(params)
        except KeyboardInterrupt:
            print("\nInterrupted, saving the best shapes found so far")
        except OSError as e:
            self.error_message = f"Error writing output files: {e}"
            return False

        try:
            saved = self.save_outputs(params)
        except OSError as e:
            self.error_message = f"Error writing output files: {e}"
            return False
        elapsed = datetime.datetime.now() - start_time
        print(
            f"Stopped at generation {state.generation} after {elapsed}, "
            f"best diff {float(state.best_known_diff):f}%"
        )
        for path in saved:
            print(f"Saved: {path}")
        return True

    def save_outputs(self, params: Dict[str, Any]) -> List[str]:
        """
        Writes the absolute best set to the SVG and checkpoint files, and the
        last accepted rendering to the preview image when one was requested

        :param params: Run parameters holding the output paths
        :type params: Dict[str, Any]
        :raises OSError: If a file cannot be written
        :return: Paths of the written files
        :rtype: List[str]
        """
        optimizer = self.optimizer
        save_svg(params["svg_path"], optimizer.absolute_best, optimizer.image_shape)
        save_checkpoint(params["checkpoint_path"], optimizer.state, optimizer.absolute_best)
        written = [params["svg_path"], params["checkpoint_path"]]
        if params.get("preview_path"):
            image_utils.save_image(optimizer.last_frame, params["preview_path"])
            written.append(params["preview_path"])
        return written


def main(argv=None) -> int:
    """
    Entry point for the shapeme command

    :param argv: Command line arguments without the program name, sys.argv[1:] by default
    :type argv: Optional[list[str]]
    :return: Process exit status
    :rtype: int
    """
    from cli.parser import parse_arguments

    args = parse_arguments(sys.argv[1:] if argv is None else argv)
    return App().run_cli(args)
