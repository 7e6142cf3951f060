"""Background job dispatch, execution and retry.

Every attempt runs in its own detached OS process started with a single
argument, the job id.  The job record in the status store is the only state
shared between the dispatching process and the attempt processes:

    pending -> running -> completed
                       -> pending_retry -> running (new process) ...
                       -> failed

Only the live attempt process writes a record; the next attempt is spawned
after the previous one has persisted ``pending_retry``.
"""
