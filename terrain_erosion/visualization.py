#!/usr/bin/env python3
import matplotlib.pyplot as plt
import numpy as np

# Water thinner than this is not drawn
DRY_DEPTH = 1e-3


def create_visualization(sim, save=True, show=False):
    """
    Generates and saves a visualization of the current simulation state.
    """
    cfg = sim.cfg
    view = sim.snapshot()
    terrain, water = view['terrain_height'], view['water_depth']
    dry = water < DRY_DEPTH

    fig, axes = plt.subplots(2, 3, figsize=(18, 10), constrained_layout=True)
    fig.suptitle(f'Terrain Erosion: {cfg.experiment_name} - Step {sim.step_count}, '
                 f'Time: {sim.time:.2f}s', fontsize=16)

    # --- Row 1: 2D Maps ---

    ax = axes[0, 0]
    im = ax.imshow(terrain, cmap='terrain', aspect='auto', origin='lower')
    ax.set_title('Terrain Height (b)')
    plt.colorbar(im, ax=ax, label='Height')

    ax = axes[0, 1]
    im = ax.imshow(np.ma.masked_where(dry, water), cmap='Blues', aspect='auto', origin='lower', vmin=0)
    ax.set_title('Water Depth (d)')
    plt.colorbar(im, ax=ax, label='Depth')

    ax = axes[0, 2]
    vel_mag = np.hypot(view['velocity'][0], view['velocity'][1])
    im = ax.imshow(np.ma.masked_where(dry, vel_mag), cmap='Reds', aspect='auto', origin='lower', vmin=0)
    ax.set_title('Flow Velocity |v|')
    plt.colorbar(im, ax=ax, label='Velocity')

    # --- Row 2: Analysis Plots ---

    ax = axes[1, 0]
    change = sim.initial_terrain - terrain
    vmax = max(1e-3, np.max(np.abs(change)))
    im = ax.imshow(change, cmap='RdBu', aspect='auto', origin='lower', vmin=-vmax, vmax=vmax)
    ax.set_title('Erosion (Red) / Deposition (Blue)')
    plt.colorbar(im, ax=ax, label='Height Change')

    ax = axes[1, 1]
    im = ax.imshow(view['suspended_sediment'], cmap='YlOrBr', aspect='auto', origin='lower', vmin=0)
    ax.set_title('Suspended Sediment (s)')
    plt.colorbar(im, ax=ax, label='Sediment')

    ax = axes[1, 2]
    if len(sim.metrics['max_erosion']) > 1:
        steps = np.arange(1, len(sim.metrics['max_erosion']) + 1)
        ax.plot(steps, sim.metrics['max_erosion'], 'r-', label='Max Erosion')
        ax.set_xlabel('Step')
        ax.set_ylabel('Max Erosion', color='r')
        ax.tick_params(axis='y', labelcolor='r')

        ax2 = ax.twinx()
        ax2.plot(steps, sim.metrics['total_water'], 'b-', label='Total Water')
        ax2.set_ylabel('Total Water', color='b')
        ax2.tick_params(axis='y', labelcolor='b')
    ax.set_title('Metrics Evolution')
    ax.grid(True, linestyle=':', alpha=0.6)

    for ax in axes.flat[:5]:
        ax.set_xlabel('x (cells)')
        ax.set_ylabel('y (cells)')

    filepath = None
    if save:
        sim.output_dir.mkdir(parents=True, exist_ok=True)
        filepath = sim.output_dir / f"frame_{sim.step_count:06d}.png"
        plt.savefig(filepath, dpi=120)

    if show:
        plt.show()

    plt.close(fig)
    return filepath
