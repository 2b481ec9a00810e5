"""
Tests for the internal helpers (Unset, coalesce, rename, seconds).

Conventions
- Test method names follow CamelCase per project convention.
"""
import copy
import pickle
import unittest
from datetime import timedelta
from unittest import TestCase

from caravan.utils import *


class UnsetTest(TestCase):
    """Tests for the Unset sentinel."""

    def testSingleton(self):
        self.assertIs(UnsetType(), Unset)

    def testFalsy(self):
        self.assertFalse(Unset)
        self.assertNotEqual(Unset, None)

    def testRepr(self):
        self.assertEqual(repr(Unset), "Unset")

    def testCopyAndPickleKeepIdentity(self):
        self.assertIs(copy.copy(Unset), Unset)
        self.assertIs(copy.deepcopy(Unset), Unset)
        self.assertIs(pickle.loads(pickle.dumps(Unset)), Unset)

    def testFinal(self):
        with self.assertRaises(TypeError):
            type("Other", (UnsetType,), {})


class CoalesceTest(TestCase):

    def testReplacesOnlyUnset(self):
        self.assertEqual(coalesce(Unset, 5), 5)
        self.assertIsNone(coalesce(Unset))
        self.assertIsNone(coalesce(None, 5))
        self.assertEqual(coalesce(0, 5), 0)


class RenameTest(TestCase):

    def testFunctionForm(self):
        def f():
            pass

        self.assertIs(rename(f, "task"), f)
        self.assertEqual(f.__name__, "task")
        self.assertEqual(f.__qualname__, "task")

    def testDecoratorForm(self):
        @rename("worker")
        def f():
            pass

        self.assertEqual(f.__name__, "worker")

    def testErrors(self):
        with self.assertRaises(TypeError):
            rename(1, "x")
        with self.assertRaises(TypeError):
            rename(lambda: None, 1)
        with self.assertRaises(TypeError):
            rename(1)
        with self.assertRaises(TypeError):
            rename(len, "size")
        with self.assertRaises(TypeError):
            rename()


class SecondsTest(TestCase):

    def testConversions(self):
        self.assertEqual(seconds(2), 2.0)
        self.assertEqual(seconds(0.5), 0.5)
        self.assertEqual(seconds(timedelta(minutes=1)), 60.0)

    def testRejectsOtherTypes(self):
        for value in ("1", None, True):
            with self.subTest(value=value):
                with self.assertRaises(TypeError):
                    seconds(value)


if __name__ == '__main__':
    unittest.main()
