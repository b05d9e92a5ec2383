"""Shared fixtures: every test starts from a registry holding the core vocabulary."""

import pytest

from yangtree import core
from yangtree.extensions import registry


EXAMPLE_MODULE = """
module example {
  namespace "urn:example";
  prefix ex;
  description "Example module";

  typedef percent {
    type uint8 {
      range "0..100";
    }
  }

  grouping endpoint {
    leaf host {
      type string;
    }
    leaf port {
      type uint16;
      default 8080;
    }
  }

  container server {
    leaf name {
      type string;
    }
    leaf load {
      type ex:percent;
    }
    uses endpoint;
  }
}
"""


@pytest.fixture(autouse=True)
def core_registry():
    """Reset the global registry and install the core vocabulary."""
    registry.reset()
    core.install()
    yield registry
    registry.reset()


@pytest.fixture
def empty_registry(core_registry):
    """Registry with nothing installed, for custom vocabularies."""
    core_registry.reset()
    return core_registry


@pytest.fixture
def example_source():
    return EXAMPLE_MODULE
