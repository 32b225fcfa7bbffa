# tests/test_dunders.py

import unittest
import copy
import pickle
import numpy as np
from rigidframe import Quaternion, RigidTransform


class TestQuaternionDunders(unittest.TestCase):
    def setUp(self):
        # 40° about a skew axis
        self.q = Quaternion.from_axis_angle([1.0, 2.0, 2.0], np.deg2rad(40.0))

    def test_copy_and_deepcopy(self):
        for dup in (copy.copy(self.q), copy.deepcopy(self.q), self.q.copy()):
            self.assertEqual(dup, self.q)
            self.assertIsNot(dup, self.q)
            # independent storage
            dup.w = 0.0
            self.assertNotEqual(dup, self.q)

    def test_pickle(self):
        back = pickle.loads(pickle.dumps(self.q))
        self.assertEqual(back, self.q)
        self.assertEqual(back.dtype, self.q.dtype)

        q32 = Quaternion(0.5, 0.5, 0.5, 0.5, dtype=np.float32)
        back = pickle.loads(pickle.dumps(q32))
        self.assertEqual(back.dtype, np.float32)
        self.assertEqual(back, q32)

    def test_eq_and_hash(self):
        other = Quaternion.from_array(self.q.as_array())
        self.assertTrue(self.q == other)
        self.assertFalse(self.q != other)
        self.assertEqual(hash(self.q), hash(other))
        self.assertEqual(len({self.q, other}), 1)

        # -q is the same rotation but a different quaternion
        self.assertNotEqual(self.q, -self.q)
        # not equal to unrelated types
        self.assertFalse(self.q == "not a quaternion")
        self.assertTrue(self.q != 1.0)

    def test_repr(self):
        r = repr(Quaternion(1.0, 0.0, 0.5, 0.0))
        self.assertEqual(r, "Quaternion(w=1.0, x=0.0, y=0.5, z=0.0)")
        self.assertEqual(str(Quaternion()), repr(Quaternion()))

    def test_iter(self):
        self.assertEqual(list(Quaternion(1.0, 2.0, 3.0, 4.0)), [1.0, 2.0, 3.0, 4.0])


class TestTransformDunders(unittest.TestCase):
    def setUp(self):
        self.t1 = RigidTransform.from_quaternion_translation(
            Quaternion.from_axis_angle([0.0, 1.0, 1.0], 0.6), [1.0, 2.0, 3.0])

    def test_matmul_with_point(self):
        v = np.array([1.0, 1.0, 1.0])
        np.testing.assert_allclose(self.t1 @ v, self.t1.apply(v), atol=0.0)

    def test_matmul_with_points(self):
        pts = np.arange(12, dtype=float).reshape(4, 3)
        out = self.t1 @ pts
        self.assertEqual(out.shape, (4, 3))
        np.testing.assert_allclose(out, self.t1.apply(pts), atol=0.0)

    def test_mul_alias(self):
        t2 = RigidTransform.from_translation([4.0, 5.0, 6.0])
        self.assertEqual(t2 * self.t1, t2 @ self.t1)

    def test_copy_and_deepcopy(self):
        self.t1.rotation
        for dup in (copy.copy(self.t1), copy.deepcopy(self.t1), self.t1.copy()):
            self.assertEqual(dup, self.t1)
            self.assertIsNot(dup, self.t1)
            self.assertTrue(dup.rotation_is_cached)
            self.assertFalse(np.shares_memory(dup.translation, self.t1.translation))
            dup.set_translation([0.0, 0.0, 0.0])
            self.assertNotEqual(dup, self.t1)

    def test_copy_keeps_stale_cache(self):
        tf = RigidTransform.from_quaternion(Quaternion.from_axis_angle([1.0, 0.0, 0.0], 0.2))
        self.assertFalse(tf.copy().rotation_is_cached)

    def test_pickle(self):
        back = pickle.loads(pickle.dumps(self.t1))
        self.assertEqual(back, self.t1)
        np.testing.assert_array_equal(back.rotation, self.t1.rotation)

        t32 = RigidTransform(dtype=np.float32)
        self.assertEqual(pickle.loads(pickle.dumps(t32)).dtype, np.float32)

    def test_eq_and_hash(self):
        other = RigidTransform.from_quaternion_translation(self.t1.quaternion, self.t1.translation)
        self.assertTrue(self.t1 == other)
        self.assertFalse(self.t1 != other)
        self.assertEqual(hash(self.t1), hash(other))
        self.assertFalse(self.t1 == RigidTransform())
        self.assertFalse(self.t1 == self.t1.to_matrix().tolist())

    def test_repr(self):
        r = repr(RigidTransform.from_translation([1.0, 2.0, 3.0]))
        self.assertTrue(r.startswith("RigidTransform(quaternion=Quaternion(w=1.0"))
        self.assertIn("translation=[1., 2., 3.]", r)
        self.assertEqual(str(self.t1), repr(self.t1))


if __name__ == "__main__":
    unittest.main()
