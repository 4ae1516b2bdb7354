"""
Per-metric scorer and confidence aggregation tests.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import random
import unittest

from confidence_backend.processing.scoring import (
    round_half_up, eye_contact_score, stability_score, expression_score,
    detect_blink, confidence_score, confidence_level, blink_rate_level,
)
from tests.fixtures.landmarks import make_landmarks, NUM_LANDMARKS


class TestEyeContact(unittest.TestCase):

    def test_frontal_face_scores_full(self):
        self.assertEqual(eye_contact_score(make_landmarks()), 100)

    def test_small_offset(self):
        # avg deviation 0.02 -> (1 - 0.1) * 100
        self.assertEqual(eye_contact_score(make_landmarks(nose=(0.56, 0.5, 0.0))), 90)

    def test_head_turn_collapses_to_zero(self):
        self.assertEqual(eye_contact_score(make_landmarks(nose=(0.9, 0.8, -0.3))), 0)

    def test_no_face_is_zero(self):
        self.assertEqual(eye_contact_score(None), 0)
        self.assertEqual(eye_contact_score([]), 0)

    def test_missing_point_is_zero(self):
        lm = make_landmarks()
        lm[168] = None
        self.assertEqual(eye_contact_score(lm), 0)

    def test_custom_gain(self):
        lm = make_landmarks(nose=(0.56, 0.5, 0.0))
        self.assertEqual(eye_contact_score(lm, gain=10), 80)


class TestStability(unittest.TestCase):

    def test_no_previous_frame_is_stable(self):
        self.assertEqual(stability_score(make_landmarks(), None), 100)
        self.assertEqual(stability_score(make_landmarks(), []), 100)

    def test_still_head(self):
        lm = make_landmarks()
        self.assertEqual(stability_score(lm, make_landmarks()), 100)

    def test_half_threshold_movement(self):
        prev = make_landmarks(nose=(0.5, 0.5, 0.0))
        curr = make_landmarks(nose=(0.515, 0.52, 0.0))
        self.assertEqual(stability_score(curr, prev), 50)

    def test_movement_beyond_threshold(self):
        prev = make_landmarks(nose=(0.5, 0.5, 0.0))
        curr = make_landmarks(nose=(0.6, 0.6, 0.05))
        self.assertEqual(stability_score(curr, prev), 0)

    def test_configurable_threshold(self):
        prev = make_landmarks(nose=(0.5, 0.5, 0.0))
        curr = make_landmarks(nose=(0.515, 0.52, 0.0))
        self.assertEqual(stability_score(curr, prev, threshold=0.1), 75)

    def test_missing_nose_is_stable(self):
        curr = make_landmarks()
        curr[1] = None
        self.assertEqual(stability_score(curr, make_landmarks()), 100)


class TestExpression(unittest.TestCase):

    def test_neutral(self):
        self.assertEqual(expression_score(make_landmarks()), 50)

    def test_smile(self):
        self.assertEqual(expression_score(make_landmarks(corner_lift=0.02)), 70)

    def test_smile_bonus_is_capped(self):
        self.assertEqual(expression_score(make_landmarks(corner_lift=0.05)), 80)

    def test_wide_smile(self):
        self.assertEqual(expression_score(make_landmarks(corner_lift=0.05, mouth_width=0.2)), 90)

    def test_frown(self):
        self.assertEqual(expression_score(make_landmarks(corner_lift=-0.02)), 40)

    def test_frown_penalty_is_capped(self):
        self.assertEqual(expression_score(make_landmarks(corner_lift=-0.1)), 30)

    def test_no_face_is_neutral(self):
        self.assertEqual(expression_score(None), 50)
        self.assertEqual(expression_score(make_landmarks()[:100]), 50)


class TestBlinkDetection(unittest.TestCase):

    def test_open_eyes(self):
        reading = detect_blink(make_landmarks(eye_gap=0.03))
        self.assertFalse(reading.is_blink)
        self.assertAlmostEqual(reading.eye_aspect_ratio, 0.03)

    def test_closed_eyes(self):
        self.assertTrue(detect_blink(make_landmarks(eye_gap=0.01)).is_blink)

    def test_no_face(self):
        reading = detect_blink(None)
        self.assertFalse(reading.is_blink)
        self.assertEqual(reading.eye_aspect_ratio, 0.0)

    def test_configurable_threshold(self):
        self.assertTrue(detect_blink(make_landmarks(eye_gap=0.03), threshold=0.05).is_blink)


class TestScoreBounds(unittest.TestCase):

    def test_random_faces_stay_in_range(self):
        rng = random.Random(1234)
        previous = None
        for _ in range(200):
            lm = [
                {"x": rng.random(), "y": rng.random(), "z": rng.uniform(-0.5, 0.5)}
                for _ in range(NUM_LANDMARKS)
            ]
            for score in (eye_contact_score(lm), stability_score(lm, previous), expression_score(lm)):
                self.assertIsInstance(score, int)
                self.assertGreaterEqual(score, 0)
                self.assertLessEqual(score, 100)
            self.assertIsInstance(detect_blink(lm).is_blink, bool)
            previous = lm


class TestConfidenceScore(unittest.TestCase):

    def test_extremes(self):
        self.assertEqual(confidence_score(100, 100, 100), 100)
        self.assertEqual(confidence_score(0, 0, 0), 0)

    def test_weighted_half_rounds_up(self):
        # 32 + 21 + 12.5 = 65.5
        self.assertEqual(confidence_score(80, 60, 50), 66)

    def test_half_integer_rounds_up_not_to_even(self):
        self.assertEqual(confidence_score(0, 0, 2), 1)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(2.4999), 2)

    def test_returns_int(self):
        self.assertIsInstance(confidence_score(33, 66, 99), int)


class TestConfidenceLevel(unittest.TestCase):

    def test_band_boundaries(self):
        expected = {
            100: "Excellent",
            80: "Excellent",
            79: "Good",
            65: "Good",
            64: "Average",
            50: "Average",
            49: "Below Average",
            35: "Below Average",
            34: "Needs Improvement",
            0: "Needs Improvement",
        }
        for score, level in expected.items():
            with self.subTest(score=score):
                self.assertEqual(confidence_level(score), level)


class TestBlinkRateLevel(unittest.TestCase):

    def test_band_boundaries(self):
        expected = {
            0: "Too focused",
            9: "Too focused",
            10: "Normal",
            25: "Normal",
            26: "Possibly nervous",
            60: "Possibly nervous",
        }
        for rate, level in expected.items():
            with self.subTest(rate=rate):
                self.assertEqual(blink_rate_level(rate), level)


if __name__ == "__main__":
    unittest.main()
