# tests/integration/test_segmentation.py

import importlib
import inspect

import pytest
import numpy as np

from crownseg.lidar import (
    InvalidParameterError,
    PointCloud,
    SegmentationError,
    SegmentationParams,
    points_in_polygon,
    segment_trees
)
from helpers import apex_index, assert_labels_consistent, make_cone

segmentation = importlib.import_module("crownseg.lidar.segment_trees")

# --- Well Separated Crowns ---

def test_two_separated_crowns(two_cones, params):
    """
    Two cones 70 m apart give exactly two trees, each apex carries a label,
    and no tree takes points from both cones.
    """
    points, cluster = two_cones
    result = segment_trees(points, params)

    assert result.completed
    assert result.n_trees == 2
    assert_labels_consistent(result.tree_ids, result.n_trees)

    a = result.tree_ids[apex_index(points, 0.0, 0.0)]
    b = result.tree_ids[apex_index(points, 50.0, 50.0)]
    assert a != 0 and b != 0 and a != b

    for tree_id in (1, 2):
        clusters = np.unique(cluster[result.tree_ids == tree_id])
        assert len(clusters) == 1

def test_labels_lie_inside_their_crown(two_cones, params):
    points, _ = two_cones
    result = segment_trees(points, params)

    for tree in result.trees:
        labelled = result.tree_ids == tree.tree_id
        inside = points_in_polygon(points[labelled, 0], points[labelled, 1], tree.hull_x, tree.hull_y)
        assert inside.all()
        assert tree.n_points == labelled.sum()
        assert tree.area > params.min_crown_area

def test_labels_cover_full_cloud(params):
    """Points dropped by the surface filter are labelled through the crown they fall in."""
    cone = make_cone(0.0, 0.0, 10.0)
    # understorey returns directly below the crown surface
    below = cone[np.hypot(cone[:, 0], cone[:, 1]) < 1.0].copy()
    below[:, 2] -= 3.0
    points = np.vstack((cone, below))

    result = segment_trees(points, params)

    assert len(result.tree_ids) == len(points)
    assert result.n_trees == 1
    assert (result.tree_ids[len(cone):] == 1).all()

def test_tree_ids_are_sequential(two_cones, params):
    result = segment_trees(two_cones[0], params)
    assert [t.tree_id for t in result.trees] == list(range(1, result.n_trees + 1))
    assert set(np.unique(result.tree_ids)) <= set(range(result.n_trees + 1))

def test_taller_tree_is_processed_first():
    points = np.vstack((make_cone(0.0, 0.0, 8.0), make_cone(40.0, 0.0, 14.0)))
    result = segment_trees(points)

    assert result.trees[0].apex_x == pytest.approx(40.0)
    assert result.tree_ids[apex_index(points, 40.0, 0.0)] == 1

def test_deterministic(two_cones, params):
    points, _ = two_cones
    first = segment_trees(points, params)
    second = segment_trees(PointCloud.from_xyz(points), params)

    assert np.array_equal(first.tree_ids, second.tree_ids)
    assert first.iterations == second.iterations

# --- Overlapping Crowns ---

def test_overlap_goes_to_taller_tree(overlapping_cones, params):
    """
    Every point inside the crown of the first (tallest) tree keeps its ID,
    even where the second crown covers it too.
    """
    points, _ = overlapping_cones
    result = segment_trees(points, params)

    assert result.n_trees >= 2
    first = result.trees[0]
    assert (first.apex_x, first.apex_y) == pytest.approx((0.0, 0.0))

    inside_first = points_in_polygon(points[:, 0], points[:, 1], first.hull_x, first.hull_y)
    assert (result.tree_ids[inside_first] == 1).all()

    assert result.tree_ids[apex_index(points, 0.0, 0.0)] == 1
    assert result.tree_ids[apex_index(points, 3.0, 0.0)] == 2

def test_labels_are_written_once(overlapping_cones, params, monkeypatch):
    """A point that already carries a tree ID is never relabelled."""
    points, _ = overlapping_cones
    original = segmentation._claim

    def spy(tree_ids, *args, **kwargs):
        before = tree_ids.copy()
        n = original(tree_ids, *args, **kwargs)
        changed = before != tree_ids
        assert (before[changed] == 0).all()
        assert changed.sum() == n
        return n

    monkeypatch.setattr(segmentation, "_claim", spy)
    result = segment_trees(points, params)
    assert result.n_trees >= 2

# --- Progress Reporting ---

def test_progress_strictly_decreases(two_cones, params):
    calls = []
    result = segment_trees(two_cones[0], params, progress=lambda *args: calls.append(args))

    assert len(calls) == result.iterations
    assert [c[0] for c in calls] == list(range(1, result.iterations + 1))
    remaining = [c[1] for c in calls]
    assert all(a > b for a, b in zip(remaining, remaining[1:]))
    assert remaining[-1] == 0
    assert all(c[2] == result.working_set_size for c in calls)

# --- Edge Cases ---

def test_single_point():
    """A lone point is its own degenerate crown: one iteration, no tree."""
    result = segment_trees(np.array([[0.0, 0.0, 10.0]]))

    assert result.iterations == 1
    assert result.n_trees == 0
    assert result.tree_ids.tolist() == [0]

def test_empty_cloud():
    result = segment_trees(np.empty((0, 3)))

    assert len(result.tree_ids) == 0
    assert result.n_trees == 0
    assert result.iterations == 0

def test_everything_below_threshold():
    points = make_cone(0.0, 0.0, 4.0)
    result = segment_trees(points)

    assert result.n_trees == 0
    assert result.iterations == 0
    assert not result.tree_ids.any()

def test_invalid_params_rejected_before_processing(two_cones):
    with pytest.raises(InvalidParameterError):
        segment_trees(two_cones[0], SegmentationParams(point_spacing=-0.25))

def test_iteration_cap_raises(two_cones):
    with pytest.raises(SegmentationError):
        segment_trees(two_cones[0], SegmentationParams(max_iterations=1))

def test_iteration_cap_early_stop(two_cones):
    result = segment_trees(two_cones[0], SegmentationParams(max_iterations=1, early_stop=True))

    assert not result.completed
    assert result.iterations == 1
    assert result.n_trees <= 1
    assert_labels_consistent(result.tree_ids, result.n_trees)

def test_default_params_are_built_per_call(two_cones):
    """No parameter object is shared between calls that rely on the defaults."""
    assert inspect.signature(segment_trees).parameters["params"].default is None

    first = segment_trees(two_cones[0])
    second = segment_trees(two_cones[0], None)
    assert first.completed and second.completed
    assert np.array_equal(first.tree_ids, second.tree_ids)
