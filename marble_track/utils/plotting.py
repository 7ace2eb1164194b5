import matplotlib.pyplot as plt
import numpy as np

from marble_track.track.track import LAYER_BRIDGE


def plot_track(track, quality=None, save_path="track.png", title="Generated Track"):
    """
    Debug plot of a track with its quality markers

    Args:
        track: Track to draw
        quality: Optional QualityReport; its sharp corners, axis-aligned
            segments and min-radius samples are highlighted
        save_path: PNG file to write
        title: Plot title

    Returns:
        save_path
    """
    fig, ax = plt.subplots(figsize=(10, 10))

    center = np.vstack([track.center, track.center[:1]])
    inner = track.boundary(1.0)
    outer = track.boundary(-1.0)

    # Road edges
    ax.plot(inner[:, 0], inner[:, 1], 'k-', linewidth=2, alpha=0.6, label='Road edge')
    ax.plot(outer[:, 0], outer[:, 1], 'k-', linewidth=2, alpha=0.6)
    ax.plot(center[:, 0], center[:, 1], 'k--', alpha=0.3, linewidth=1, label='Centerline')

    bridge = np.flatnonzero(track.layer == LAYER_BRIDGE)
    if len(bridge) > 0:
        ax.plot(track.center[bridge, 0], track.center[bridge, 1], 's', color='purple',
                markersize=3, alpha=0.6, label='Bridge')

    a, b = track.start_line()
    ax.plot([a[0], b[0]], [a[1], b[1]], 'g-', linewidth=4, label='Start/Finish')
    ax.annotate('', xy=track.center[0] + track.tangent[0] * 2.0 * track.half_width[0],
                xytext=track.center[0], arrowprops=dict(arrowstyle='->', color='green', linewidth=2))

    if quality is not None:
        if quality.sharp_corner_indices:
            idx = [track.wrap(i) for i in quality.sharp_corner_indices]
            ax.plot(track.center[idx, 0], track.center[idx, 1], 'o', color='red',
                    markersize=9, alpha=0.9, label='Sharp corner')

        for k, i in enumerate(quality.axis_aligned_segment_indices):
            p = track.center[track.wrap(i)]
            q = track.center[track.wrap(i + 1)]
            ax.plot([p[0], q[0]], [p[1], q[1]], '-', color='orange', linewidth=3, alpha=0.8,
                    label='Axis-aligned' if k == 0 else '_nolegend_')

        if quality.min_radius_indices:
            idx = [track.wrap(i) for i in quality.min_radius_indices]
            ax.plot(track.center[idx, 0], track.center[idx, 1], 'o', markerfacecolor='none',
                    markeredgecolor='deepskyblue', markersize=12, label='Min radius')

        ax.text(0.02, 0.98, f"score={quality.score}\n" + "\n".join(quality.issues),
                transform=ax.transAxes, fontsize=9, verticalalignment='top',
                bbox=dict(boxstyle='round', facecolor='white', alpha=0.8))

    ax.set_xlabel('X', fontsize=12, fontweight='bold')
    ax.set_ylabel('Y', fontsize=12, fontweight='bold')
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.axis('equal')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='lower right')

    plt.savefig(save_path, dpi=120, bbox_inches='tight')
    plt.close(fig)
    return save_path
