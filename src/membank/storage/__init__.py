"""Storage layer: raw files, version ledger, project index and locks.

Layout:
    <root>/
    ├── .index                         # {"version": 1, "mappings": {friendly: dir}}
    ├── .locks/
    │   ├── project-index.lock         # Empty marker per lock key
    │   └── project-index.lock.lock    # Holder record (pid, host, token), only while held
    ├── .history/
    │   └── ledger.db                  # Append-only version ledger (sqlite)
    ├── .archive/
    │   └── <project>/                 # Deleted files, timestamped
    └── <project>/
        ├── .metadata.json             # {friendlyName, directoryName, createdAt}
        └── *.md                       # Project files

Every mutation made through `HistoryTrackingFileStore` lands in the ledger.
Only the project index is lock-guarded; file writes rely on content
verification (see `membank.services.patch`).
"""
