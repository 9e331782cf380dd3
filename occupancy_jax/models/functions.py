"""
Link functions and numerically stable primitives shared by occupancy models.
"""

import jax
import jax.numpy as jnp


@jax.jit
def logit(x: jnp.ndarray) -> jnp.ndarray:
    """Logit link function."""
    return jnp.log(x) - jnp.log1p(-x)


@jax.jit
def inv_logit(x: jnp.ndarray) -> jnp.ndarray:
    """Inverse logit (logistic) function."""
    return jax.nn.sigmoid(x)


@jax.jit
def log_inv_logit(x: jnp.ndarray) -> jnp.ndarray:
    """log(inv_logit(x)) without forming the probability."""
    return jax.nn.log_sigmoid(x)


@jax.jit
def log1m_inv_logit(x: jnp.ndarray) -> jnp.ndarray:
    """log(1 - inv_logit(x)) without forming the probability."""
    return jax.nn.log_sigmoid(-x)


@jax.jit
def log_add_exp(a: jnp.ndarray, b: jnp.ndarray) -> jnp.ndarray:
    """
    log(exp(a) + exp(b)) by max subtraction.

    The larger argument is factored out so neither exponential can overflow
    and at most one can underflow. Both arguments equal to -inf give -inf.
    """
    m = jnp.maximum(a, b)
    m_safe = jnp.where(jnp.isfinite(m), m, 0.0)
    return m_safe + jnp.log(jnp.exp(a - m_safe) + jnp.exp(b - m_safe))


def linear_predictor(design: jnp.ndarray, coefficients: jnp.ndarray) -> jnp.ndarray:
    """Contract the trailing (column) axis of a design matrix with coefficients."""
    return jnp.matmul(design, coefficients)
