[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "evacap"
version = "0.1.0"
description = "Evacuation alarm with a small HTTP control page, captive DHCP and DNS servers, and an SSD1306 frame buffer"
requires-python = ">=3.10"
dependencies = []
keywords = ["dhcp", "dns", "captive-portal", "http", "ssd1306", "oled", "alarm"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Internet :: Name Service (DNS)",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
evacap = "evacap.app:main"

[tool.hatch.build.targets.wheel]
packages = ["evacap"]

[tool.pytest.ini_options]
addopts = "-ra"
