"""UDP proxying: per-client sessions, the session table and the listening proxy."""