"""Pod registry watcher (podreg).

Turns Kubernetes pod lifecycle events into service registry changes:
 - pods advertise services through `micro.mu/service-*` annotations
 - a snapshot cache remembers what each pod advertised last
 - every watch event is diffed against that snapshot and the resulting
   create / update / delete results are handed to a single consumer

The consumer side (an in-memory registry plus a small HTTP view) lives in
`registry` and `api`.
"""
