SAMPLE_COUNT = 512
MIN_ARENA_EXTENT = 12.0
MIN_CANDIDATE_SAMPLES = 120

COARSE_STRIDE = 4
COARSE_NEIGHBOR_IGNORE = 10

# Salts mixed with the variant to seed the fallback curve
FALLBACK_SALTS = (0x5BD1E995, 0x27D4EB2D, 0x165667B1)

WIDTH = dict(
    base_scale=0.035,
    base_min=0.9,
    base_max=2.2,
    min_factor=0.82,
    max_factor=1.6,
    turn_gain=6.0,
    turn_penalty=0.24,
    straight_curvature=0.04,
    straight_boost=0.2,
    overtake_window=6,
    overtake_min_samples=10,
    overtake_curvature=0.03,
    overtake_boost=0.18,
    wobble_freq=3.2,
    wobble_amp=0.04
)

FALLBACK = dict(
    radius_min=0.5,
    radius_max=0.72,
    warp_x_min=0.05,
    warp_x_max=0.13,
    warp_y_min=0.04,
    warp_y_max=0.11
)

START_ALIGN = dict(
    divisor=28,
    window_min=6,
    window_max=24,
    width_weight=0.02
)

MARBLE_RADIUS = 0.55

SPAWN = dict(
    max_columns=4,
    lane_margin=0.25,
    spacing_factor=2.1
)

VALIDITY = dict(
    center_tolerance=0.01,
    det_epsilon=1e-4,
    param_margin=0.001,
    collider_count_slack=2,
    collider_tolerance=0.1
)

QUALITY = dict(
    turn_window=2,
    turn_fail_deg=75.0,
    turn_warn_deg=60.0,
    sharp_corner_deg=55.0,
    sharp_fail_count=10,
    sharp_warn_count=5,
    radius_percentile=14.0,
    radius_stride=2,
    radius_width_factor=1.5,
    axis_tolerance_deg=10.0,
    axis_fail_ratio=0.72,
    axis_warn_ratio=0.48,
    jitter_max_deg=20.0,
    direction_bins=8,
    entropy_min=0.58,
    min_direction_bins=5
)

# Score deductions
PENALTY = dict(
    turn_fail=24,
    turn_warn=12,
    sharp_fail=20,
    sharp_warn=10,
    radius=20,
    axis_fail=26,
    axis_warn=12,
    jitter=14,
    entropy=16
)

PASS_SCORE = 70
BAND_GREEN = 80
BAND_YELLOW = 60

# TrackGen lab defaults
LAB = dict(
    base_seed=1000,
    seed_count=25,
    marble_count=12,
    arena_width=64.0,
    arena_height=64.0,
    # smallest full arena size the lab CLI passes on
    min_arena_size=16.0,
    variant=0
)
