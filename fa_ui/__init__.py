"""Terminal front end for fleetadm."""
