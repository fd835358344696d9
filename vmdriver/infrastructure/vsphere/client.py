"""
vSphere session management
"""

import ssl
import atexit
import logging
import threading
from typing import Any, Callable, Optional

from pyVim import connect
from pyVmomi import vim

from ...config import ConnectConfig
from ...exceptions import ConnectionError, AuthenticationError
from .references import ObjectReference


logger = logging.getLogger(__name__)


class VSphereClient:
    """
    Owns one authenticated session to a vCenter or ESXi endpoint.

    Every remote request made by the driver components goes through
    :meth:`invoke`, which serializes access to the underlying SOAP stub.
    Two operations against the same managed object are not ordered by the
    client; the endpoint decides how they interleave.
    """

    def __init__(self, config: ConnectConfig):
        self.config = config
        self._service_instance = None
        self._content = None
        self._lock = threading.RLock()

    @property
    def host(self) -> str:
        return self.config.server

    def connect(self) -> None:
        """Establish and validate the session"""
        if self._service_instance is not None:
            return

        try:
            context = None
            if self.config.insecure:
                # Lab environments may need unverified SSL context
                context = ssl._create_unverified_context()  # nosec B323

            service_instance = connect.SmartConnect(
                host=self.config.server,
                user=self.config.username,
                pwd=self.config.password,
                port=self.config.port,
                sslContext=context
            )
            content = service_instance.RetrieveContent()
            if content.sessionManager.currentSession is None:
                connect.Disconnect(service_instance)
                raise AuthenticationError(f"vSphere {self.config.server} did not open a session")

        except vim.fault.InvalidLogin as e:
            raise AuthenticationError(
                f"Failed to authenticate to vSphere {self.config.server}: {e.msg}") from e
        except AuthenticationError:
            raise
        except Exception as e:
            raise ConnectionError(f"Failed to connect to vSphere {self.config.server}: {str(e)}") from e

        self._service_instance = service_instance
        self._content = content
        atexit.register(self.disconnect)
        logger.info(f"Connected to vSphere {self.config.server} as {self.config.username}")

    def disconnect(self) -> None:
        """Log out of vSphere"""
        with self._lock:
            if self._service_instance:
                try:
                    connect.Disconnect(self._service_instance)
                finally:
                    self._service_instance = None
                    self._content = None
                    atexit.unregister(self.disconnect)
                    logger.info(f"Disconnected from vSphere {self.config.server}")

    def is_connected(self) -> bool:
        return self._service_instance is not None

    @property
    def service_instance(self):
        if not self._service_instance:
            raise ConnectionError("Not connected to vSphere")
        return self._service_instance

    @property
    def content(self):
        """Get vSphere content object"""
        if not self._content:
            raise ConnectionError("Not connected to vSphere")
        return self._content

    def invoke(self, method: Callable, *args, **kwargs) -> Any:
        """Run one remote call while holding the session lock"""
        with self._lock:
            if not self._service_instance:
                raise ConnectionError("Not connected to vSphere")
            return method(*args, **kwargs)

    def reference(self, ref: ObjectReference):
        """Bind ``ref`` to this session as a pyVmomi managed object"""
        return ref.to_managed_object(self.service_instance._stub)
