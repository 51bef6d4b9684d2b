"""
Motion models (process models) for tag tracking.

Provides the two discrete-time models used by the positioning filters:
- Constant velocity with acceleration as control input
- Constant acceleration with acceleration observed as a measurement

Both models share the noise-shaping construction Q = G·Gᵀ·q, where G maps a
2D acceleration disturbance into the state.
"""

from typing import Optional

import numpy as np


class ConstantVelocity2D:
    """
    2D Constant Velocity Motion Model with acceleration input.

    State: x = [px, py, vx, vy]
    Dynamics: x_{k+1} = F(dt) x_k + B(dt) u_k + w_k,  w_k ~ N(0, G Gᵀ q)

    The control input u = [ax, ay] is the accelerometer reading of the
    previous cycle.

    Example:
        >>> model = ConstantVelocity2D()
        >>> x = np.array([0.0, 0.0, 1.0, 0.5])
        >>> model.f(x, np.array([2.0, 0.0]), dt=0.5)
        array([0.75, 0.25, 2.  , 0.5 ])
    """

    state_dim = 4

    @staticmethod
    def F(dt: float) -> np.ndarray:
        """
        State transition matrix.

        Args:
            dt: Time step in seconds

        Returns:
            4x4 state transition matrix
        """
        return np.array([
            [1.0, 0.0, dt,  0.0],
            [0.0, 1.0, 0.0, dt ],
            [0.0, 0.0, 1.0, 0.0],
            [0.0, 0.0, 0.0, 1.0]
        ])

    @staticmethod
    def B(dt: float) -> np.ndarray:
        """
        Control input matrix mapping [ax, ay] into position and velocity.

        Args:
            dt: Time step in seconds

        Returns:
            4x2 control matrix
        """
        return np.array([
            [dt**2 / 2, 0.0      ],
            [0.0,       dt**2 / 2],
            [dt,        0.0      ],
            [0.0,       dt       ]
        ])

    @classmethod
    def G(cls, dt: float) -> np.ndarray:
        """Noise-shaping matrix; the disturbance enters like the control input."""
        return cls.B(dt)

    @classmethod
    def Q(cls, dt: float, q: float = 1.0) -> np.ndarray:
        """
        Process noise covariance Q = G Gᵀ q.

        Args:
            dt: Time step in seconds
            q: Process uncertainty (acceleration variance)

        Returns:
            4x4 process noise covariance matrix
        """
        G = cls.G(dt)
        return q * G @ G.T

    @classmethod
    def f(cls, x: np.ndarray, u: Optional[np.ndarray] = None, dt: float = 1.0) -> np.ndarray:
        """
        Noise-free process model x_{k+1} = F x_k + B u_k.

        Args:
            x: State [px, py, vx, vy]
            u: Control input [ax, ay] (zero if None)
            dt: Time step in seconds

        Returns:
            Next state
        """
        x = np.asarray(x, dtype=float)
        if x.shape != (4,):
            raise ValueError(f"State must be 4D [px,py,vx,vy], got shape {x.shape}")

        x_next = cls.F(dt) @ x
        if u is not None:
            x_next = x_next + cls.B(dt) @ np.asarray(u, dtype=float)
        return x_next


class ConstantAcceleration2D:
    """
    2D Constant Acceleration Motion Model.

    State: x = [px, py, vx, vy, ax, ay]
    Dynamics: x_{k+1} = F(dt) x_k + w_k,  w_k ~ N(0, G Gᵀ q)

    The acceleration components are observed directly by the accelerometer,
    so this model takes no control input; G drives a random walk on the
    acceleration that propagates into velocity and position.

    Example:
        >>> model = ConstantAcceleration2D()
        >>> x = np.array([0.0, 0.0, 1.0, 0.0, 2.0, 0.0])
        >>> model.f(x, dt=1.0)[:3]
        array([2., 0., 3.])
    """

    state_dim = 6

    @staticmethod
    def F(dt: float) -> np.ndarray:
        """
        State transition matrix.

        Args:
            dt: Time step in seconds

        Returns:
            6x6 state transition matrix
        """
        return np.array([
            [1.0, 0.0, dt,  0.0, dt**2 / 2, 0.0      ],
            [0.0, 1.0, 0.0, dt,  0.0,       dt**2 / 2],
            [0.0, 0.0, 1.0, 0.0, dt,        0.0      ],
            [0.0, 0.0, 0.0, 1.0, 0.0,       dt       ],
            [0.0, 0.0, 0.0, 0.0, 1.0,       0.0      ],
            [0.0, 0.0, 0.0, 0.0, 0.0,       1.0      ]
        ])

    @staticmethod
    def G(dt: float) -> np.ndarray:
        """
        Noise-shaping matrix for an acceleration disturbance.

        Args:
            dt: Time step in seconds

        Returns:
            6x2 noise-shaping matrix
        """
        return np.array([
            [dt**2 / 2, 0.0      ],
            [0.0,       dt**2 / 2],
            [dt,        0.0      ],
            [0.0,       dt       ],
            [1.0,       0.0      ],
            [0.0,       1.0      ]
        ])

    @classmethod
    def B(cls, dt: float) -> np.ndarray:
        """Control matrix; zero because acceleration is part of the state."""
        return np.zeros((cls.state_dim, 2))

    @classmethod
    def Q(cls, dt: float, q: float = 1.0) -> np.ndarray:
        """
        Process noise covariance Q = G Gᵀ q.

        Args:
            dt: Time step in seconds
            q: Process uncertainty

        Returns:
            6x6 process noise covariance matrix
        """
        G = cls.G(dt)
        return q * G @ G.T

    @classmethod
    def f(cls, x: np.ndarray, u: Optional[np.ndarray] = None, dt: float = 1.0) -> np.ndarray:
        """
        Noise-free process model x_{k+1} = F x_k.

        Args:
            x: State [px, py, vx, vy, ax, ay]
            u: Control input (unused)
            dt: Time step in seconds

        Returns:
            Next state
        """
        x = np.asarray(x, dtype=float)
        if x.shape != (6,):
            raise ValueError(
                f"State must be 6D [px,py,vx,vy,ax,ay], got shape {x.shape}"
            )
        return cls.F(dt) @ x
