# test_track_manager.py
"""Tests for IoU geometry and the frame-to-frame face matcher."""

import unittest

from detections import BoundingBox, Emotion, RawDetection
from track_manager import FrameMatcher, compute_iou, predict_box
from track_store import TrackStore


def make_det(x, y, w=50, h=50, label="Person 1", emotion=Emotion.NEUTRAL):
    return RawDetection(provider_label=label, emotion=emotion, bounding_box=BoundingBox(x, y, w, h))


class TestComputeIoU(unittest.TestCase):
    def test_identical_boxes(self):
        box = BoundingBox(10, 20, 30, 40)
        self.assertAlmostEqual(compute_iou(box, box), 1.0)

    def test_non_overlapping_boxes(self):
        a = BoundingBox(0, 0, 10, 10)
        b = BoundingBox(20, 20, 10, 10)
        self.assertEqual(compute_iou(a, b), 0.0)

    def test_touching_edges_do_not_overlap(self):
        a = BoundingBox(0, 0, 10, 10)
        b = BoundingBox(10, 0, 10, 10)
        self.assertEqual(compute_iou(a, b), 0.0)

    def test_symmetric(self):
        a = BoundingBox(0, 0, 100, 100)
        b = BoundingBox(30, 10, 80, 60)
        self.assertAlmostEqual(compute_iou(a, b), compute_iou(b, a))

    def test_partial_overlap_value(self):
        a = BoundingBox(0, 0, 100, 100)
        b = BoundingBox(50, 0, 100, 100)
        # 5000 / (10000 + 10000 - 5000)
        self.assertAlmostEqual(compute_iou(a, b), 1.0 / 3.0)

    def test_degenerate_boxes(self):
        box = BoundingBox(0, 0, 10, 10)
        self.assertEqual(compute_iou(box, BoundingBox(0, 0, 0, 10)), 0.0)
        self.assertEqual(compute_iou(BoundingBox(5, 5, 0, 0), BoundingBox(5, 5, 0, 0)), 0.0)
        self.assertEqual(compute_iou(box, BoundingBox(0, 0, -10, 10)), 0.0)

    def test_normalized_coordinates(self):
        a = BoundingBox(0.1, 0.1, 0.2, 0.2)
        self.assertAlmostEqual(compute_iou(a, a), 1.0)

    def test_predict_box_moves_center_keeps_size(self):
        predicted = predict_box(BoundingBox(10, 10, 50, 40), (2.0, -3.0))
        self.assertEqual(predicted, BoundingBox(12, 7, 50, 40))


class TestFrameMatcher(unittest.TestCase):
    def setUp(self):
        self.store = TrackStore()
        self.matcher = FrameMatcher(self.store, iou_threshold=0.3, max_misses=5, velocity_alpha=0.5)

    def test_empty_frame_on_empty_store(self):
        self.assertEqual(self.matcher.match([], now=1.0), [])
        self.assertEqual(len(self.store), 0)

    def test_first_detection_creates_track(self):
        resolved = self.matcher.match([make_det(10, 10)], now=1.0)
        self.assertEqual([r.persistent_id for r in resolved], [1])
        track = self.store.get(1)
        self.assertEqual(track.velocity, (0.0, 0.0))
        self.assertEqual(track.consecutive_misses, 0)
        self.assertEqual(track.provider_label, "Person 1")
        self.assertEqual(track.last_seen, 1.0)

    def test_reference_scenario(self):
        # Frame 1: new face
        r1 = self.matcher.match([make_det(10, 10, label="P1")], now=0.0)
        self.assertEqual(r1[0].persistent_id, 1)

        # Frame 2: moved 4px right
        r2 = self.matcher.match([make_det(14, 10, label="P1")], now=2.0)
        self.assertEqual(r2[0].persistent_id, 1)
        track = self.store.get(1)
        self.assertAlmostEqual(track.velocity[0], 2.0)
        self.assertAlmostEqual(track.velocity[1], 0.0)
        self.assertEqual(track.last_seen, 2.0)

        # Frame 3: occluded, box advanced by velocity
        self.matcher.match([], now=4.0)
        track = self.store.get(1)
        self.assertEqual(track.consecutive_misses, 1)
        self.assertAlmostEqual(track.bounding_box.x, 16.0)
        self.assertEqual(track.last_seen, 2.0)

        # Frames 4-6: still retained
        for i in range(3):
            self.matcher.match([], now=6.0 + 2 * i)
        self.assertEqual(self.store.get(1).consecutive_misses, 4)

        # Frame 7: fifth miss drops it
        self.matcher.match([], now=12.0)
        self.assertNotIn(1, self.store)
        self.assertEqual(len(self.store), 0)

        # Frame 8: same place again gets a new id
        r8 = self.matcher.match([make_det(14, 10, label="P1")], now=14.0)
        self.assertEqual(r8[0].persistent_id, 2)

    def test_id_stable_under_smooth_motion(self):
        ids = []
        for frame in range(20):
            resolved = self.matcher.match([make_det(100 + 6 * frame, 80 + 2 * frame)], now=float(frame))
            ids.append(resolved[0].persistent_id)
        self.assertEqual(set(ids), {1})
        vx, vy = self.store.get(1).velocity
        self.assertAlmostEqual(vx, 6.0, places=3)
        self.assertAlmostEqual(vy, 2.0, places=3)

    def test_fast_motion_tracked_through_prediction(self):
        # 30px steps on a 50px box: IoU against the stale box is 0.25, under threshold,
        # so only the predicted box keeps the identity once velocity has built up.
        self.matcher.match([make_det(0, 0)], now=0.0)
        self.matcher.match([make_det(20, 0)], now=1.0)
        ids = []
        for frame in range(2, 8):
            resolved = self.matcher.match([make_det(20 + 30 * (frame - 1), 0)], now=float(frame))
            ids.append(resolved[0].persistent_id)
        self.assertEqual(set(ids), {1})

    def test_occlusion_shorter_than_limit_keeps_id(self):
        self.matcher.match([make_det(100, 100)], now=0.0)
        for i in range(4):
            self.matcher.match([], now=1.0 + i)
        self.assertEqual(self.store.get(1).consecutive_misses, 4)

        resolved = self.matcher.match([make_det(100, 100)], now=5.0)
        self.assertEqual(resolved[0].persistent_id, 1)
        self.assertEqual(self.store.get(1).consecutive_misses, 0)

    def test_occlusion_reaching_limit_drops_track(self):
        self.matcher.match([make_det(100, 100)], now=0.0)
        for i in range(5):
            self.matcher.match([], now=1.0 + i)
        self.assertEqual(len(self.store), 0)

        resolved = self.matcher.match([make_det(100, 100)], now=6.0)
        self.assertEqual(resolved[0].persistent_id, 2)

    def test_ids_never_reused(self):
        seen = []
        for frame in range(10):
            # Each frame shows one face far away from all previous ones
            resolved = self.matcher.match([make_det(1000 * frame, 0)], now=float(frame))
            seen.append(resolved[0].persistent_id)
        self.assertEqual(seen, list(range(1, 11)))
        self.assertEqual(self.store.peek_next_id(), 11)

    def test_greedy_prefers_highest_iou(self):
        self.matcher.match([make_det(0, 0, 100, 100)], now=0.0)
        far = make_det(30, 0, 100, 100, label="A")   # IoU ~0.54
        near = make_det(10, 0, 100, 100, label="B")  # IoU ~0.82
        resolved = self.matcher.match([far, near], now=1.0)
        self.assertEqual([r.persistent_id for r in resolved], [2, 1])
        self.assertEqual(self.store.get(1).provider_label, "B")

    def test_equal_iou_ties_keep_candidate_order(self):
        # Two tracks at the same spot, one detection: the earlier track wins
        self.matcher.match([make_det(0, 0, label="A"), make_det(0, 0, label="B")], now=0.0)
        resolved = self.matcher.match([make_det(0, 0, label="C")], now=1.0)
        self.assertEqual(resolved[0].persistent_id, 1)
        self.assertEqual(self.store.get(2).consecutive_misses, 1)

    def test_duplicate_provider_label_cannot_claim_two_tracks(self):
        self.matcher.match([make_det(0, 0, label="P1"), make_det(200, 0, label="P2")], now=0.0)

        resolved = self.matcher.match(
            [make_det(0, 0, label="P1"), make_det(200, 0, label="P1")], now=1.0
        )
        self.assertEqual([r.persistent_id for r in resolved], [1, 3])
        self.assertEqual(self.store.get(2).consecutive_misses, 1)
        self.assertEqual(self.store.get(3).provider_label, "P1")

    def test_empty_labels_are_not_guarded(self):
        self.matcher.match([make_det(0, 0, label=""), make_det(200, 0, label="")], now=0.0)
        resolved = self.matcher.match([make_det(0, 0, label=""), make_det(200, 0, label="")], now=1.0)
        self.assertEqual([r.persistent_id for r in resolved], [1, 2])

    def test_zero_area_detection_becomes_new_track(self):
        self.matcher.match([make_det(10, 10)], now=0.0)
        resolved = self.matcher.match([make_det(10, 10, 0, 0)], now=1.0)
        self.assertEqual(resolved[0].persistent_id, 2)
        self.assertEqual(self.store.get(1).consecutive_misses, 1)

    def test_output_preserves_input_order_and_detection(self):
        self.matcher.match([make_det(0, 0, label="A")], now=0.0)
        dets = [make_det(500, 500, label="new", emotion=Emotion.HAPPY), make_det(0, 0, label="A")]
        resolved = self.matcher.match(dets, now=1.0)
        self.assertIs(resolved[0].detection, dets[0])
        self.assertIs(resolved[1].detection, dets[1])
        self.assertEqual(resolved[0].emotion, Emotion.HAPPY)
        self.assertEqual([r.persistent_id for r in resolved], [2, 1])
        self.assertIsNone(resolved[0].student)

    def test_skip_frame_default_leaves_store_untouched(self):
        self.matcher.match([make_det(0, 0)], now=0.0)
        before = self.store.get(1)
        self.matcher.skip_frame(now=1.0)
        self.assertIs(self.store.get(1), before)
        self.assertEqual(self.store.get(1).consecutive_misses, 0)

    def test_skip_frame_counting_as_miss(self):
        self.matcher.match([make_det(0, 0)], now=0.0)
        for i in range(4):
            self.matcher.skip_frame(now=1.0 + i, count_as_miss=True)
        self.assertEqual(self.store.get(1).consecutive_misses, 4)
        self.matcher.skip_frame(now=5.0, count_as_miss=True)
        self.assertEqual(len(self.store), 0)


if __name__ == "__main__":
    unittest.main()
