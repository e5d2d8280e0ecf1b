"""vmclaim - claims a compute instance on a capacity-constrained cloud and stages it up."""

__version__ = "1.0.0"
