#!/usr/bin/env python3
import argparse
import logging
import sys
from pathlib import Path

from terrain_erosion.config import ErosionConfig, ErosionError, load_config
from terrain_erosion.simulation import ErosionSimulation
from terrain_erosion.sources import NpyHeightSource, ValleyHeightSource
from terrain_erosion.visualization import create_visualization

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(description="Run a hydraulic and thermal terrain erosion simulation.")
    parser.add_argument(
        '--config',
        type=Path,
        help='Path to the configuration YAML file.'
    )
    parser.add_argument(
        '--name',
        type=str,
        help='Override the experiment name from the config file.'
    )
    parser.add_argument('--steps', type=int, help='Number of steps to run.')
    parser.add_argument('--dt', type=float, help='Timestep per frame.')
    parser.add_argument('--seed', type=int, help='Seed for rain and generated terrain.')
    parser.add_argument('--rain', action='store_true', help='Turn precipitation on.')
    parser.add_argument(
        '--heightmap',
        type=Path,
        help='Initial terrain as a .npy array of shape (length, width). '
             'A generated valley is used when omitted.'
    )
    parser.add_argument(
        '--no-frames',
        action='store_true',
        help='Skip writing PNG frames.'
    )
    parser.add_argument(
        '--quick',
        action='store_true',
        help='Run a quick simulation with reduced steps and resolution for testing.'
    )
    return parser


def build_config(args) -> ErosionConfig:
    if args.config is not None:
        if not args.config.exists():
            raise FileNotFoundError(f"Configuration file not found at: {args.config}")
        config = load_config(args.config)
    else:
        config = ErosionConfig()

    if args.name:
        config.experiment_name = args.name
        logger.info(f"Experiment name set to '{config.experiment_name}' via command line.")
    if args.steps is not None:
        config.total_steps = args.steps
    if args.dt is not None:
        config.base_dt = args.dt
    if args.seed is not None:
        config.seed = args.seed
    if args.rain:
        config.is_raining = True

    if args.quick:
        logger.info("Running in --quick mode.")
        config.total_steps = 100
        config.output_interval = 50
        config.metrics_interval = 25
        config.width = 64
        config.length = 64
        config.experiment_name = f"{config.experiment_name}_quick_test"

    config.validate()
    return config


def main(argv=None):
    """Main function to run the erosion simulation."""
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        if args.heightmap is not None:
            source = NpyHeightSource(args.heightmap)
            config.length, config.width = source.shape
        else:
            source = ValleyHeightSource(config.width, config.length, config.cell_length, seed=config.seed)
        sim = ErosionSimulation(config, source)
    except (ErosionError, FileNotFoundError) as exc:
        logger.error(str(exc))
        return 1

    frame_callback = None if args.no_frames else create_visualization
    sim.run(frame_callback=frame_callback)
    if frame_callback is not None:
        create_visualization(sim, save=True)
    metrics_file = sim.save_final_metrics()
    logger.info(f"Summary written to {metrics_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
