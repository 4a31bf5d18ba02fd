# open_lmm

Building blocks for finding loop closures between LiDAR scans, within one
session and across several agents:

- `open_lmm.config`: JSON configuration files (comments allowed) with typed
  parameter access: `Config`, `GlobalConfig`, `ParamKind`,
  `ParamNotFoundError`, plus `quaternion_to_rotation` and
  `rotation_to_quaternion`.
- `open_lmm.formatting`: `convert_to_string`, `format_vector`,
  `format_quaternion` and `format_isometry`, which render values for log
  messages.
- `open_lmm.descriptor`: the abstract `Descriptor` interface and `yaw_pose`.
- `open_lmm.scan_context`: the Scan Context descriptor (`ScanContext`,
  `ScanContextParams`).
- `open_lmm.solid`: the SOLiD descriptor (`Solid`, `SolidParams`).
- `open_lmm.database`: `DatabaseKdtree`, a k-d tree over descriptor keys
  that returns `Match(agent_id, key, rel_pose)` entries. It also has
  `DatabaseParams` and `create_descriptor_module`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Descriptors and the database

A scan is an `(N, 3)` or wider NumPy array whose first three columns are
`x, y, z`. `make_descriptor(scan)` builds a new descriptor of the same kind.
`distance(other)` returns a distance and a 4x4 relative pose that is a
rotation about z.

```python
import numpy as np
from open_lmm.database import DatabaseKdtree, DatabaseParams
from open_lmm.scan_context import ScanContext, ScanContextParams

model = ScanContext(ScanContextParams())  # 60 sectors, 20 rings, 80 m range
database = DatabaseKdtree(
    DatabaseParams(descriptor_vector_dim=20, kdtree_rebuild_threshold=1)
)

scans = [np.random.default_rng(i).uniform(-30, 30, size=(2000, 3)) for i in range(3)]
for index, scan in enumerate(scans):
    descriptor = model.make_descriptor(scan)
    match = database.query(descriptor)
    if match is not None:
        print(f"scan {index} matches {match.agent_id}:{match.key}")
    database.insert("A", index, descriptor)
```

`descriptor_vector_dim` must equal the length of the descriptor key. That is
`number_rings` for Scan Context and `num_range` for SOLiD. A key of any other
length raises `ValueError`.

The database searches its k-d tree for `max(k, num_candidates)` nearest keys.
It compares those candidates with the query using `distance` and keeps the
ones below `distance_threshold`, nearest first. The tree is rebuilt only when
the number of entries is a multiple of `kdtree_rebuild_threshold`, so entries
added since the last rebuild cannot be found yet. `merge(other)` appends
another database's entries and rebuilds the tree over all of them.
`copy()` returns an independent, fully indexed database.

`create_descriptor_module("scan_context" | "solid", config)` returns an empty
descriptor whose parameters are read from `config`. Any other name raises
`ValueError`. If `config` is omitted, the parameters are read from the
loop-detector file that `GlobalConfig` points to.

## Configuration

```python
from open_lmm.config import Config, ParamKind
from open_lmm.scan_context import ScanContextParams

config = Config("config_loop_detector.json")
params = ScanContextParams.from_config(config)
threshold = config.param("database", "distance_threshold", 0.13, ParamKind.DOUBLE)
```

Looking up a parameter:

- `param(module, name)` returns `None` when the parameter is absent.
- `param(module, name, default)` returns the default and logs a warning.
- `param_cast` raises `ParamNotFoundError`.
- `param_nested` and `param_cast_nested` take a list of nested module names.
- A vector, quaternion or pose value with the wrong number of entries counts
  as absent.

Changing and writing parameters:

- `override_param` changes a value in memory only.
- `save(path)` writes the current values as indented JSON.

`GlobalConfig.instance(path)` loads `path/config.json` once per process.
`GlobalConfig.reset()` drops that instance. The path helpers are:

- `get_global_config_path(name)`
- `get_root_data_dir()`
- `get_sub_dir_list()`
- `get_save_dir_path()`: `root_save_dir` followed by the date the instance
  was created.

## What is not included

This package has no command-line program and no end-to-end pipeline. It does
not:

- read point-cloud or pose files;
- run loop detection over whole sessions;
- do map-to-map registration;
- optimise a pose graph;
- remove dynamic points;
- write merged maps.

It provides the configuration, descriptor and database pieces that such a
pipeline would use.