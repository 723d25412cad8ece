# labkit

A self-contained toolkit for building and testing small distributed
systems. It needs nothing beyond the Python standard library.

## Parts

- **`labkit.porcupine`**: a linearizability checker. Describe a system
  with a `Model` (`init` and `step`, plus optional `partition`,
  `partition_event`, `equal`, `describe_operation` and `describe_state`),
  record a history of `Operation`s or `Event`s, and ask
  `check_operations` / `check_events` whether it is linearizable. The
  `*_timeout` variants take a timeout in seconds (`None` or 0 for none)
  and return a `CheckResult` (`OK`, `ILLEGAL`, or `UNKNOWN` when time ran
  out). The `*_verbose` variants also return a `LinearizationInfo` holding
  the longest linearizable prefixes found in each partition.
  `labkit.porcupine.bitset.Bitset` is the packed bit set the checker uses.
- **`labkit.models.kv`**: a model of a key/value store with get (op 0),
  put (op 1) and append (op 2): `KvInput`, `KvOutput`, `kv_partition`
  (one partition per key, in key order), `kv_init`, `kv_step`,
  `kv_describe_operation`, and the assembled `KV_MODEL`.
- **`labkit.labgob`**: an `Encoder` / `Decoder` pair writing framed values
  (a 4-byte length and a JSON body) to binary streams. Dataclasses, enums,
  lists, tuples, dicts, bytes and scalars round-trip. `Decoder.decode`
  returns the next value and raises `EOFError` at the end of the stream;
  `Decoder.decode_into` fills an existing dataclass instance. A warning is
  logged, and counted in `error_count()`, for dataclass fields whose names
  start with an underscore and for decoding into an instance that already
  holds non-default values. `register` and `register_name` bind a
  dataclass or enum to a name.
- **`labkit.mr`**: a MapReduce framework.
  - `labkit.mr.coordinator.Coordinator(files, n_reduce, task_timeout=10.0)`
    hands out map tasks, then reduce tasks, returns tasks whose workers
    stay silent past the timeout to idle, and reports `done()` once every
    reduce task has finished. `serve()` listens on a UNIX-domain socket
    (by default `labkit.mr.rpc.coordinator_sock()`), `close()` stops it;
    it is also a context manager. `make_coordinator(files, n_reduce)`
    builds one and starts serving.
  - `labkit.mr.worker` has `worker(mapf, reducef)`, which asks for tasks
    until told to exit, along with `run_map`, `run_reduce`, `ihash`,
    `ask_work`, `ask_file`, `call` and `call_example`.
  - `labkit.mr.rpc` holds the request and reply records.
  - `labkit.mr.cli` has `load_app`, `sequential` and the three commands
    below.
- **`labkit.mrapps`**: applications: word count (`wc`), an inverted index
  (`indexer`), and test applications that crash or stall (`crash`), do the
  same work without crashing (`nocrash`), run long for some keys
  (`early_exit`), count their own invocations (`jobcount`), and measure
  parallelism (`timing`, loaded as `mtiming` and `rtiming`).
- **`labkit.kvraft.common`**: the request and reply records of a key/value
  service: `Err`, `GetArgs`, `GetReply`, `PutAppendArgs`,
  `PutAppendReply`.

## Running MapReduce

Run a whole job in one process, writing `mr-out-0`:

    mrsequential wc pg-*.txt

Or run it distributed: start a coordinator with the input files, then one
or more workers with the same application.

    mrcoordinator pg-*.txt
    mrworker wc

The application argument is one of `wc`, `indexer`, `crash`, `nocrash`,
`early_exit`, `jobcount`, `mtiming`, `rtiming`; a directory and file
extension around the name are ignored. The coordinator uses 10 reduce
tasks. Intermediate files are named `mr-<input>-<n>`, and reduce task `n`
writes `mr-out-<n>`; every line holds a key and its reduced value
separated by a space. The coordinator exits once all reduce tasks are
done, and workers exit when told there is no more work.

## Writing an application

An application provides two functions:

- `map_func(filename, contents)` returns a list of `KeyValue` pairs;
- `reduce_func(key, values)` returns one string for the key.

Keys are spread across reduce tasks with `ihash(key) % n_reduce`, so the
same key always reaches the same reduce task. Such functions can be run
directly with `labkit.mr.cli.sequential(mapf, reducef, filenames)` or
`labkit.mr.worker.worker(mapf, reducef)`; the commands only know the
applications listed above.

## What labkit does not do

- There is no simulated RPC network: nothing here drops, delays or
  reorders messages between in-process hosts.
- There is no key/value client or server. `labkit.kvraft` holds only the
  message records; no replicated log or consensus is included.
- `LinearizationInfo` is not rendered; there is no visualization of
  checker results.