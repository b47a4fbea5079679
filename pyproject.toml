[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "hdrmat"
version = "0.1.0"
description = "Image containers, fixed-point conversions, a simulated block memory pool, homography estimation and a baseline YUV420 JPEG encoder"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["image", "yuv420", "nv12", "jpeg", "homography", "svd", "hdr", "memory-pool"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["hdrmat"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
