# SpeedOps test suite
