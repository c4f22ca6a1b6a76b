# SPDX-License-Identifier: GPL-3.0-or-later

_defaults = dict(
    power_iterations=100,
    power_tolerance=1e-3,
    finite_difference_step=1e-5,
    recent_positions=5,
    shrinkage_prior=5.,
    shrinkage_target=1e-3,
    min_window_draws=10,
    test_fraction=0.2,
    min_test_draws=5,
)

_config = dict(_defaults)

_int_keys = ("power_iterations", "recent_positions", "min_window_draws",
             "min_test_draws")


def get(key, /):
    """Return the current value of a configuration option of autometric."""
    if not isinstance(key, str):
        raise TypeError(f"key must be a string; got {key!r}")
    key = key.lower()
    if key not in _config:
        raise ValueError(f"invalid key; got {key!r}")
    return _config[key]


def update(key, value, /):
    """Update the global configuration of autometric

    Parameters
    ----------
    key : str
        Identifier for the configuration option.
    value : int or float
        Value for the configuration option.


    Currently, the following configuration options are available:

    - "power_iterations": maximum number of power iterations per eigenvalue
      estimate (positive int, default 100)
    - "power_tolerance": relative tolerance of the power iteration (non-negative
      float, default 1e-3)
    - "finite_difference_step": step of the finite difference Hessian-vector
      product (positive float, default 1e-5)
    - "recent_positions": number of recent local draws at which the curvature
      is probed (positive int, default 5)
    - "shrinkage_prior": weight, in draws, of the shrinkage target (positive
      float, default 5)
    - "shrinkage_target": scale of the identity the covariance is shrunk
      towards (positive float, default 1e-3)
    - "min_window_draws": minimum number of pooled draws needed to select a
      metric (positive int, default 10)
    - "test_fraction": fraction of the pooled draws held out for the selection
      (float in [0, 1), default 0.2)
    - "min_test_draws": minimum number of held out draws (positive int,
      default 5)
    """
    global _config
    if not isinstance(key, str):
        raise TypeError(f"key must be a string; got {key!r}")
    key = key.lower()
    if key not in _config:
        raise ValueError(f"invalid key; got {key!r}")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"value to {key!r} must be a number; got {value!r}")
    if key in _int_keys:
        if not isinstance(value, int):
            raise TypeError(f"value to {key!r} must be an int; got {value!r}")
        if value < 1:
            raise ValueError(f"invalid value to {key!r}; got {value!r}")
    elif key == "test_fraction":
        if not 0 <= value < 1:
            raise ValueError(f"invalid value to {key!r}; got {value!r}")
    elif key == "power_tolerance":
        if value < 0:
            raise ValueError(f"invalid value to {key!r}; got {value!r}")
    elif value <= 0:
        raise ValueError(f"invalid value to {key!r}; got {value!r}")
    _config[key] = value


def reset():
    """Restore the default configuration."""
    global _config
    _config = dict(_defaults)
