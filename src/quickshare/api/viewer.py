"""HTML gallery viewer served at the root path."""

import json


def render_viewer(token: str) -> str:
    """Return the viewer page bound to a session token."""
    return _VIEWER_HTML.replace("__SESSION_TOKEN__", json.dumps(token))


_VIEWER_HTML = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Shared Photos</title>
    <style>
      body { font-family: ui-sans-serif, system-ui, sans-serif; background: #121212;
             color: #fff; margin: 0; padding: 20px; }
      h1 { text-align: center; font-weight: 300; margin-bottom: 30px; }
      .gallery { display: grid; gap: 16px; max-width: 1200px; margin: 0 auto;
                 grid-template-columns: repeat(auto-fill, minmax(150px, 1fr)); }
      .card { background: #1e1e1e; border-radius: 12px; overflow: hidden;
              position: relative; }
      .thumb { width: 100%; aspect-ratio: 1; object-fit: cover; display: block;
               cursor: pointer; }
      .actions { position: absolute; bottom: 0; width: 100%; box-sizing: border-box;
                 padding: 8px 10px; display: flex; justify-content: space-between;
                 align-items: center; background: rgba(0, 0, 0, 0.5); }
      .name { font-size: 11px; opacity: 0.8; max-width: 70%; overflow: hidden;
              white-space: nowrap; text-overflow: ellipsis; }
      .btn { background: #3d3d3d; color: #fff; padding: 4px 10px; border-radius: 6px;
             text-decoration: none; font-size: 12px; }
      .message { grid-column: 1 / -1; text-align: center; padding: 50px; }
      .modal { display: none; position: fixed; inset: 0; z-index: 10;
               background: rgba(0, 0, 0, 0.9); align-items: center;
               justify-content: center; }
      .modal.active { display: flex; }
      .modal img { max-width: 95%; max-height: 95%; border-radius: 8px; }
    </style>
  </head>
  <body>
    <h1>Shared Photos</h1>
    <div id="gallery" class="gallery">
      <div class="message">Loading gallery...</div>
    </div>
    <div id="modal" class="modal" onclick="closeModal()">
      <img id="full" alt="" />
    </div>
    <script>
      const TOKEN = __SESSION_TOKEN__;

      async function loadPhotos() {
        const gallery = document.getElementById('gallery');
        try {
          const res = await fetch('/photos?token=' + encodeURIComponent(TOKEN));
          if (!res.ok) throw new Error('HTTP ' + res.status);
          renderGallery(await res.json());
        } catch (e) {
          gallery.innerHTML =
            '<div class="message">Could not load this session. ' +
            'The link may have expired.</div>';
        }
      }

      function renderGallery(photos) {
        const gallery = document.getElementById('gallery');
        gallery.innerHTML = '';
        if (!photos.length) {
          gallery.innerHTML = '<div class="message">No photos shared.</div>';
          return;
        }
        for (const photo of photos) {
          const card = document.createElement('div');
          card.className = 'card';

          const img = document.createElement('img');
          img.className = 'thumb';
          img.loading = 'lazy';
          img.src = photo.thumbnailUrl;
          img.alt = photo.name;
          img.onclick = () => openModal(photo.downloadUrl);

          const actions = document.createElement('div');
          actions.className = 'actions';
          const name = document.createElement('span');
          name.className = 'name';
          name.textContent = photo.name;
          const link = document.createElement('a');
          link.className = 'btn';
          link.href = photo.downloadUrl;
          link.download = photo.name;
          link.textContent = 'Download';
          actions.append(name, link);

          card.append(img, actions);
          gallery.appendChild(card);
        }
      }

      function openModal(url) {
        document.getElementById('full').src = url;
        document.getElementById('modal').classList.add('active');
      }

      function closeModal() {
        document.getElementById('modal').classList.remove('active');
        setTimeout(() => { document.getElementById('full').src = ''; }, 200);
      }

      loadPhotos();
    </script>
  </body>
</html>
"""
