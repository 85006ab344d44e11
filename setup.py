from setuptools import setup, find_packages

# -------------------------------------------------------------------------
# kludgesf: 谐和坐标下的 kludge 自力与多极波形 (arXiv:1109.0572)
# 运行时依赖 numpy / scipy / loguru；测试另需 pytest 与 sympy:
#     pip install -e ".[test]"
# -------------------------------------------------------------------------
setup(
    name="kludgesf",
    version="0.1.0",
    description="Kludge self-force and multipole waveforms for EMRIs in Kerr spacetime",

    # 自动查找 Python 包 (在 src 目录下)
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",

    # 依赖项
    install_requires=[
        "numpy",
        "scipy",
        "loguru",
    ],
    extras_require={
        "test": [
            "pytest",
            "sympy",
        ],
    },

    include_package_data=True,
    zip_safe=False,
)
