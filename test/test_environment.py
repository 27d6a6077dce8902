"""
Tests for runtime environments (frames and bindings)
"""

import pytest
from environment import (
  env_assign,
  env_child,
  env_declare,
  env_depth,
  env_is_defined,
  env_is_mutable,
  env_local_bindings,
  env_lookup,
  make_runtime_env,
)
from error_handling import ImmutableAssignmentError, UndefinedVariableError
from stdlib import make_value


def num(n):
  return make_value(n, "Int")


class TestEnvironment:

  @pytest.fixture
  def root(self):
    return make_runtime_env()

  def test_declare_and_lookup(self, root):
    env_declare(root, "x", num(1))
    assert env_lookup(root, "x") == num(1)

  def test_lookup_walks_parents(self, root):
    env_declare(root, "x", num(1))
    inner = env_child(env_child(root))
    assert env_lookup(inner, "x") == num(1)
    assert env_depth(inner) == 3

  def test_undefined(self, root):
    with pytest.raises(UndefinedVariableError):
      env_lookup(root, "missing")
    assert not env_is_defined(root, "missing")

  def test_shadowing_leaves_outer_untouched(self, root):
    env_declare(root, "x", num(1))
    inner = env_child(root)
    env_declare(inner, "x", num(2))
    assert env_lookup(inner, "x") == num(2)
    assert env_lookup(root, "x") == num(1)

  def test_redeclare_in_same_frame_replaces(self, root):
    env_declare(root, "x", num(1))
    env_declare(root, "x", num(2), mutable=True)
    assert env_lookup(root, "x") == num(2)
    assert env_is_mutable(root, "x")

  def test_assign_updates_defining_frame(self, root):
    env_declare(root, "count", num(0), mutable=True)
    inner = env_child(root)
    env_assign(inner, "count", num(5))
    assert env_lookup(root, "count") == num(5)
    assert list(env_local_bindings(inner)) == []

  def test_assign_immutable(self, root):
    env_declare(root, "x", num(1))
    with pytest.raises(ImmutableAssignmentError, match="let @mut"):
      env_assign(root, "x", num(2))
    assert env_lookup(root, "x") == num(1)

  def test_assign_undefined(self, root):
    with pytest.raises(UndefinedVariableError):
      env_assign(root, "ghost", num(1))

  def test_local_bindings(self, root):
    env_declare(root, "a", num(1))
    env_declare(root, "b", num(2), mutable=True)
    assert list(env_local_bindings(root)) == [("a", num(1), False), ("b", num(2), True)]
