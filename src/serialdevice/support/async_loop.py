"""
A background thread that repeatedly runs a unit of work until it is stopped.
"""
import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class AsyncLoop:
    """ Continually runs a given function on a background thread.
        Exceptions are logged and posted to a given handler
        The background thread is registered as a daemon.
    """

    def __init__(self, fn: Callable=None, args=(), log=logger, name=None):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        :param name the name given to the background thread
        """
        self.fn = fn
        self.args = args
        self.name = name
        self.stop_event = threading.Event()
        self.started_event = threading.Event()
        self.background_thread = None
        self.logger = log
        self._start_lock = threading.Lock()

    def start(self):
        """
        Starts the background thread. Starting an already started loop does nothing.
        """
        with self._start_lock:
            if self.background_thread is None:
                t = threading.Thread(target=self._run, name=self.name)
                t.daemon = True
                self.background_thread = t
                t.start()

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes the callable for as long as the stop signal is not received.
        """
        self._do(self.startup)
        self.started_event.set()
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.info("background thread exiting")

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            time.sleep(0)
            callme()
        except Exception as e:
            time.sleep(0)
            self.exception_handler(e)

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.stop_event.is_set()

    @property
    def started(self):
        """ True once startup() has completed on the background thread. """
        return self.started_event.is_set()

    @property
    def alive(self):
        """ True while the background thread exists and has not terminated. """
        thread = self.background_thread
        return thread is not None and thread.is_alive()

    def wait(self, seconds):
        """ sleeps on the stop event. Returns True if the loop was stopped while waiting. """
        return self.stop_event.wait(seconds)

    def stop(self, timeout=None):
        """
        Signals the loop to stop and waits for the background thread to finish.
        When called from the background thread itself, the thread is not joined.
        :param timeout: the longest to wait for the thread, None waits indefinitely.
        :return: True if the thread has finished (or was never started.)
        """
        event = self.stop_event
        event.set()
        thread = self.background_thread
        self.background_thread = None
        if thread and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                self.logger.warning("background thread %s did not stop within %s seconds" % (thread.name, timeout))
                return False
        return True
