from setuptools import setup

setup(
    name='fluxfield',
    version='0.1.0',
    py_modules=['fieldstate', 'sampler', 'particles', 'integrator',
                'render_modes', 'overlays', 'engine', 'main'],
    python_requires='>=3.10',
    install_requires=['pygame', 'numpy', 'numba'],
    extras_require={'test': ['pytest']},
    entry_points={'console_scripts': ['fluxfield=main:main']},
    zip_safe=False,
)
