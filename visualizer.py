"""
visualizer.py — 2-D Density Viewer
===================================
Renders the interior density of a 2-D GridSolver (ghost border
stripped) next to its velocity magnitude, stepping the solver once per
animation frame.

Uses matplotlib FuncAnimation for real-time updates.
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation
from matplotlib.colors import LinearSegmentedColormap

# Custom smoke colormap: black → orange → white
SMOKE_COLORS = ["#000000", "#1a0a00", "#ff6a00", "#ffffff"]
smoke_cmap = LinearSegmentedColormap.from_list("smoke", SMOKE_COLORS)


class FluidVisualizer:
    """
    Real-time viewer of a 2-D grid solver.

    Usage (standalone):
        from gridfluid import GridSolver
        from visualizer import FluidVisualizer

        solver = GridSolver((64, 64), spacing=1/64, origin=(0, 0))
        solver.density[32, 8] = 1.0
        viz = FluidVisualizer(solver)
        viz.run()  # Opens live window
    """

    def __init__(self, solver, frame_dt: float = 1.0 / 60.0):
        """
        Args:
            solver   : GridSolver instance (must be 2-D)
            frame_dt : simulated seconds per rendered frame
        """
        if solver.dimension != 2:
            raise ValueError(f"FluidVisualizer only draws 2-D solvers, got {solver.dimension}-D")
        self.solver = solver
        self.frame_dt = frame_dt
        self.frame = 0

        self._setup_figure()

    def _setup_figure(self):
        """Initialize the matplotlib figure with density and speed panels."""
        self.fig, self.axes = plt.subplots(1, 2, figsize=(10, 5))
        self.fig.patch.set_facecolor('#0a0a0a')

        titles = ["density", "|velocity|"]
        cmaps = [smoke_cmap, "viridis"]
        limits = [(0.0, 1.0), (0.0, 2.0)]
        self.imgs = []

        dummy = np.zeros(self.solver.resolution).T

        for ax, title, cmap, (vmin, vmax) in zip(self.axes, titles, cmaps, limits):
            ax.set_facecolor('#0a0a0a')
            ax.set_title(title, color='#aaaaaa', fontsize=9, fontfamily='monospace')
            ax.set_xticks([])
            ax.set_yticks([])
            for spine in ax.spines.values():
                spine.set_edgecolor('#333333')

            img = ax.imshow(
                dummy, cmap=cmap,
                vmin=vmin, vmax=vmax,
                interpolation='bilinear',
                origin='lower',
                aspect='equal'
            )
            self.imgs.append(img)

        self.title_text = self.fig.suptitle(
            "Grid Fluid — Frame 0",
            color='#cccccc', fontsize=10, fontfamily='monospace'
        )

        plt.tight_layout()

    def _get_images(self) -> tuple:
        """Interior density and cell-center speed, transposed so x is horizontal."""
        interior = (slice(1, -1), slice(1, -1))
        density = self.solver.interior_density()
        speed = np.linalg.norm(self.solver.velocity.value_at_cell_center()[interior], axis=-1)
        return density.T, speed.T

    def update(self, frame_num):
        """Called by FuncAnimation each frame. Steps the solver and updates plots."""
        metrics = self.solver.advance(self.frame_dt)
        self.frame += 1

        for img, image in zip(self.imgs, self._get_images()):
            img.set_data(image)

        self.title_text.set_text(
            f"Grid Fluid — Frame {self.frame} | t={metrics['time']:.3f}s | "
            f"{metrics['sub_steps']} sub-step(s) | "
            f"div_max={metrics['divergence_max']:.5f}"
        )

        return self.imgs + [self.title_text]

    def run(self, fps: int = 30, frames: int = 500):
        """
        Start the live animation window.

        Args:
            fps    : Target animation frame rate
            frames : Total frames to render
        """
        interval_ms = 1000 // fps
        self.anim = animation.FuncAnimation(
            self.fig,
            self.update,
            frames=frames,
            interval=interval_ms,
            blit=False
        )
        plt.show()

    def save_gif(self, path: str = "grid_fluid.gif", fps: int = 30, frames: int = 100):
        """Save animation as a GIF (for reports and demos)."""
        print(f"Rendering {frames} frames to {path}...")
        self.anim = animation.FuncAnimation(
            self.fig, self.update, frames=frames, interval=1000 // fps, blit=False
        )
        writer = animation.PillowWriter(fps=fps)
        self.anim.save(path, writer=writer)
        print(f"Saved: {path}")
