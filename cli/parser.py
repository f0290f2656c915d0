import argparse

from utils.config_loader import DEFAULT_PARAMETERS, MAX_MUTATION_RATE


class PositiveInt(argparse.Action):
    """
    Custom argparse action rejecting zero and negative shape counts
    """

    def __call__(self, parser, namespace, values, option_string=None):
        """
        Checks that the parsed integer is at least 1

        :param parser: The ArgumentParser object
        :type parser: argparse.ArgumentParser
        :param namespace: The argparse.Namespace object to store attributes
        :type namespace: argparse.Namespace
        :param values: The parsed integer
        :type values: int
        :param option_string: The option string that was used ('--max-shapes')
        :type option_string: str
        :raises argparse.ArgumentError: If the value is below 1
        """
        if values < 1:
            parser.error(f"{option_string} must be at least 1, got {values}")
        setattr(namespace, self.dest, values)


def build_parser() -> argparse.ArgumentParser:
    """
    Builds the command line parser

    Options default to None so that only values given explicitly override a
    JSON run configuration; the effective defaults live in `DEFAULT_PARAMETERS`

    :return: The configured parser
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="shapeme",
        description="Approximate an image with semi-transparent triangles and circles",
    )

    # input/output args
    parser.add_argument("image", help="Path to the target image")
    parser.add_argument(
        "checkpoint",
        help="Path to the binary checkpoint, loaded at startup and rewritten periodically",
    )
    parser.add_argument("svg", help="Path to the SVG export of the best shapes")

    shape_group = parser.add_argument_group("Shape Settings")
    shape_group.add_argument(
        "--use-triangles",
        type=int,
        choices=[0, 1],
        help=f"Enable triangles (default: {int(DEFAULT_PARAMETERS['use_triangles'])})",
    )
    shape_group.add_argument(
        "--use-circles",
        type=int,
        choices=[0, 1],
        help=f"Enable circles (default: {int(DEFAULT_PARAMETERS['use_circles'])})",
    )
    shape_group.add_argument(
        "--max-shapes",
        type=int,
        action=PositiveInt,
        metavar="COUNT",
        help=f"Maximum number of shapes (default: {DEFAULT_PARAMETERS['max_shapes']})",
    )
    shape_group.add_argument(
        "--initial-shapes",
        type=int,
        action=PositiveInt,
        metavar="COUNT",
        help=f"Shapes active at the start (default: {DEFAULT_PARAMETERS['initial_shapes']})",
    )

    opt_group = parser.add_argument_group("Optimization Settings")
    opt_group.add_argument(
        "--mutation-rate",
        type=int,
        metavar="RATE",
        help=f"Mutation chance per draw, 0 to {MAX_MUTATION_RATE} "
        f"(default: {DEFAULT_PARAMETERS['mutation_rate']})",
    )
    opt_group.add_argument(
        "--seed", type=int, help="Seed for the random generator (default: random)"
    )
    opt_group.add_argument(
        "--generations",
        type=int,
        action=PositiveInt,
        metavar="COUNT",
        help="Stop after this many generations (default: run until interrupted)",
    )
    opt_group.add_argument(
        "--restart",
        action="store_const",
        const=True,
        help="Don't load the old state at startup",
    )

    io_group = parser.add_argument_group("Configuration and Output")
    io_group.add_argument(
        "--config",
        metavar="PATH_TO_JSON",
        help="JSON run configuration; options given on the command line take precedence",
    )
    io_group.add_argument(
        "--preview",
        metavar="PATH_TO_PNG",
        help="Write the current best rendering to this image at every export",
    )
    return parser


def parse_arguments(args):
    """
    Parses command line arguments for shapeme

    :param args: A list of command line arguments (typically sys.argv[1:])
    :type args: list[str]
    :return: An argparse.Namespace object containing parsed arguments
    :rtype: argparse.Namespace
    """
    parser = build_parser()
    parsed_args = parser.parse_args(args)

    # post-parsing validation
    if parsed_args.use_triangles == 0 and parsed_args.use_circles == 0:
        print("Warning: Both shape kinds disabled, falling back to triangles")
    if parsed_args.mutation_rate is not None and not (
        0 <= parsed_args.mutation_rate <= MAX_MUTATION_RATE
    ):
        print(
            f"Warning: Mutation rate {parsed_args.mutation_rate} clamped to [0, {MAX_MUTATION_RATE}]"
        )

    return parsed_args
