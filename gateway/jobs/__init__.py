from gateway.jobs.job_queue import Job, JobQueue, JobQueues, QueueClosedError

__all__ = ["Job", "JobQueue", "JobQueues", "QueueClosedError"]
