"""
Ember runtime environments
A frame is a dictionary of bindings plus a link to its lexically enclosing frame.
Frames are shared by reference: closures and child frames keep them alive,
and assignments through any of them are visible to all.
"""

from typing import Any, Dict, Iterator, Optional, Tuple

from error_handling import ImmutableAssignmentError, UndefinedVariableError


# ============================================================================
# DATA STRUCTURES
# ============================================================================

def make_runtime_env(parent: Optional[Dict] = None) -> Dict:
  """Create an empty frame; a frame without parent is the root (global) scope"""
  return {
      'parent': parent,
      'bindings': {}
  }


def make_binding(value: Dict, mutable: bool) -> Dict:
  return {
      'value': value,
      'mutable': mutable
  }


def env_child(parent: Dict) -> Dict:
  """New frame nested inside parent (function call, loop iteration, block)"""
  return make_runtime_env(parent)


# ============================================================================
# ENVIRONMENT OPERATIONS
# ============================================================================

def env_declare(env: Dict, name: str, value: Dict, mutable: bool = False) -> None:
  """Bind name in this frame, replacing any binding of the same name here
  and shadowing those of enclosing frames."""
  env['bindings'][name] = make_binding(value, mutable)


def env_find_frame(env: Dict, name: str) -> Optional[Dict]:
  """Innermost frame that binds name, or None"""
  frame = env
  while frame is not None:
    if name in frame['bindings']:
      return frame
    frame = frame['parent']
  return None


def env_lookup(env: Dict, name: str) -> Dict:
  """Look up a value in the environment chain"""
  frame = env_find_frame(env, name)
  if frame is None:
    raise UndefinedVariableError(f"Undefined variable '{name}'")
  return frame['bindings'][name]['value']


def env_assign(env: Dict, name: str, value: Dict) -> None:
  """Mutate the innermost binding of name"""
  frame = env_find_frame(env, name)
  if frame is None:
    raise UndefinedVariableError(f"Cannot assign to undefined variable '{name}'")
  binding = frame['bindings'][name]
  if not binding['mutable']:
    raise ImmutableAssignmentError(
        f"Cannot assign to '{name}': binding is not mutable (declare it with 'let @mut')")
  binding['value'] = value


def env_is_defined(env: Dict, name: str) -> bool:
  return env_find_frame(env, name) is not None


def env_is_mutable(env: Dict, name: str) -> bool:
  frame = env_find_frame(env, name)
  if frame is None:
    raise UndefinedVariableError(f"Undefined variable '{name}'")
  return frame['bindings'][name]['mutable']


def env_depth(env: Dict) -> int:
  """Number of frames between env and the root, root included"""
  depth = 0
  frame: Any = env
  while frame is not None:
    depth += 1
    frame = frame['parent']
  return depth


def env_local_bindings(env: Dict) -> Iterator[Tuple[str, Dict, bool]]:
  """(name, value, mutable) for each binding of this frame only"""
  for name, binding in env['bindings'].items():
    yield name, binding['value'], binding['mutable']
