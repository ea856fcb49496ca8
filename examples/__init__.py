"""
farmtest Examples Package
=========================

Runnable examples of robust, factor-adjusted multiple testing.

Examples
--------
heavy_tailed_testing : module
    Plain robust mean test vs factor-adjusted test on heavy-tailed
    factor-model data, with empirical false discovery proportions.
two_sample_comparison : module
    Two-sample tests with observed factors, Gaussian vs bootstrap p-values.

Quick Start
-----------
Run any example directly from the command line:

    $ python examples/heavy_tailed_testing.py
    $ python examples/two_sample_comparison.py

Or import as modules:

    >>> from examples import run_example
    >>> results = run_example("heavy_tailed_testing", n=50, p=20)
"""

__all__ = [
    "heavy_tailed_testing",
    "two_sample_comparison",
]


def list_examples():
    """
    List all available examples with descriptions.

    Returns
    -------
    dict
        Dictionary mapping example names to their descriptions.
    """
    return {
        "heavy_tailed_testing": (
            "Robust mean test vs factor-adjusted test on Student-t factor "
            "data. Reports discoveries and false discovery proportions."
        ),
        "two_sample_comparison": (
            "Two-sample comparison with observed factors using Gaussian and "
            "multiplier bootstrap p-values."
        ),
    }


def run_example(name, *args, **kwargs):
    """
    Dynamically import and run an example.

    Parameters
    ----------
    name : str
        Name of the example to run (without .py extension).
    *args, **kwargs
        Arguments to pass to the example's main() function.

    Returns
    -------
    result
        Return value from the example's main() function.
    """
    import importlib

    valid_examples = list_examples().keys()
    if name not in valid_examples:
        raise ValueError(
            f"Unknown example '{name}'. Valid examples: {', '.join(valid_examples)}"
        )

    module = importlib.import_module(f"examples.{name}")
    return module.main(*args, **kwargs)
