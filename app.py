"""
Main NiceGUI application for graph-explorer.
Renders the GraphViewer with ui.echart and provides dataset, hover and
layout controls plus the node context menu.
"""

import logging
import sys
import time

from nicegui import ui

from graph_explorer.chart_builder import REQUESTED_EVENT_KEYS, normalize_click_payload, resolve_node_id_from_payload
from graph_explorer.config import get_graph_config
from graph_explorer.echart_surface import EChartSurface
from graph_explorer.expansion import DeleteMode
from graph_explorer.viewer import LAYOUT_MODES, GraphViewer

logger = logging.getLogger(__name__)

# Seconds after a node click during which the DOM click is not treated as a stage click
NODE_CLICK_GRACE = 0.3


@ui.page('/')
async def index():
    viewer = GraphViewer(get_graph_config())
    state = {
        'pointer': (0.0, 0.0),
        'button': 0,
        'last_node_click': 0.0,
    }

    chart = ui.echart({'series': [{'type': 'graph', 'data': [], 'links': []}]})
    chart.style('width: 100vw; height: 100vh; position: absolute; top: 0; left: 0; z-index: 0;')
    surface = EChartSurface(chart, viewer.store, viewer.config)
    viewer.attach_surface(surface)

    def node_from(event):
        raw_payload = event.args if hasattr(event, 'args') else event
        return resolve_node_id_from_payload(normalize_click_payload(raw_payload), viewer.store)

    # --- Chart events ---

    def handle_mouse_over(e):
        node_id = node_from(e)
        if node_id:
            viewer.on_node_enter(node_id)

    def handle_mouse_out(e):
        node_id = node_from(e)
        if node_id:
            viewer.on_node_leave(node_id)

    def handle_node_down(e):
        node_id = node_from(e)
        if node_id:
            viewer.on_node_down(node_id, state['button'])

    def handle_node_click(e):
        node_id = node_from(e)
        if node_id:
            state['last_node_click'] = time.time()
            viewer.on_node_click(node_id)

    def handle_context_menu(e):
        node_id = node_from(e)
        if node_id:
            x, y = state['pointer']
            viewer.on_node_right_click(node_id, x, y)

    chart.on('chart:mouseover', handle_mouse_over, REQUESTED_EVENT_KEYS)
    chart.on('chart:mouseout', handle_mouse_out, REQUESTED_EVENT_KEYS)
    chart.on('chart:mousedown', handle_node_down, REQUESTED_EVENT_KEYS)
    chart.on('chart:click', handle_node_click, REQUESTED_EVENT_KEYS)
    chart.on('chart:contextmenu', handle_context_menu, REQUESTED_EVENT_KEYS)

    # --- DOM events on the chart container ---

    def handle_dom_down(e):
        state['button'] = e.args.get('button', 0)

    def handle_dom_move(e):
        x, y = e.args.get('offsetX', 0), e.args.get('offsetY', 0)
        state['pointer'] = (x, y)
        if viewer.drag.dragging:
            viewer.on_pointer_move(*surface.screen_to_graph(x, y))

    def handle_dom_click(e):
        if time.time() - state['last_node_click'] > NODE_CLICK_GRACE:
            viewer.on_stage_click()

    chart.on('mousedown', handle_dom_down, ['button'])
    chart.on('mousemove', handle_dom_move, ['offsetX', 'offsetY'], throttle=0.02)
    chart.on('mouseup', lambda e: viewer.on_pointer_up())
    chart.on('mouseleave', lambda e: viewer.on_pointer_leave())
    chart.on('click', handle_dom_click)
    chart.on('wheel', lambda e: viewer.on_wheel(), throttle=0.5)
    chart.on('contextmenu.prevent', lambda e: None)

    # --- Context menu ---

    menu_card = ui.card().classes('fixed z-20 shadow-2xl w-80 gap-2')
    menu_card.set_visibility(False)

    async def do_expand(node_id):
        await viewer.expand(node_id)

    def do_collapse(node_id):
        viewer.collapse(node_id)

    def do_delete(node_id, mode):
        viewer.delete_node(node_id, mode)

    @ui.refreshable
    def render_menu():
        menu = viewer.relations.state
        menu_card.set_visibility(menu.visible)
        if not menu.visible or menu.node_id is None:
            return
        menu_card.style(f'left: {menu.x}px; top: {menu.y}px;')
        node_id = menu.node_id
        editor = viewer.relations

        ui.label(editor.node_display(node_id)).classes('text-lg font-bold')
        with ui.column().classes('w-full gap-1'):
            if viewer.is_expanded(node_id):
                ui.button('Collapse', icon='unfold_less', on_click=lambda: do_collapse(node_id)).props('flat dense')
            else:
                ui.button('Expand', icon='unfold_more', on_click=lambda: do_expand(node_id)).props('flat dense')
            ui.button('Delete', icon='delete', on_click=lambda: do_delete(node_id, DeleteMode.CASCADE)).props('flat dense color=negative')
            ui.button('Delete (keep children)', icon='delete_outline',
                      on_click=lambda: do_delete(node_id, DeleteMode.KEEP_CHILDREN)).props('flat dense color=negative')

            if menu.draft_source is None:
                ui.button('Start relation', icon='call_made', on_click=editor.start_relation).props('flat dense')
            else:
                ui.button(f'Connect from {editor.node_display(menu.draft_source)}', icon='link',
                          on_click=editor.connect_relation).props('flat dense color=primary')
                ui.button('Cancel relation', icon='link_off', on_click=editor.cancel_relation_draft).props('flat dense')

            if menu.relations:
                ui.button('Delete relation...', icon='playlist_remove', on_click=editor.open_delete_panel).props('flat dense')

        if menu.show_create_panel:
            ui.separator()
            ui.input('Relation label', value=menu.label_input,
                     on_change=lambda e: editor.set_label_input(e.value)).props('dense autofocus').classes('w-full')
            with ui.row().classes('gap-2'):
                ui.button('Create', on_click=editor.confirm_create_relation).props('color=primary dense')
                ui.button('Cancel', on_click=editor.cancel_relation_create).props('flat dense')

        if menu.show_delete_panel:
            ui.separator()
            options = {r.id: r.text for r in menu.relations}
            ui.select(options, value=menu.selected_edge_id,
                      on_change=lambda e: editor.select_relation(e.value)).props('dense').classes('w-full')
            with ui.row().classes('gap-2'):
                ui.button('Delete', on_click=editor.delete_selected_relation).props('color=negative dense')
                ui.button('Cancel', on_click=editor.cancel_relation_delete).props('flat dense')
        elif menu.relations:
            ui.separator()
            for relation in menu.relations:
                with ui.row().classes('w-full items-center no-wrap gap-1'):
                    ui.label(relation.text).classes('text-xs grow')
                    ui.button(icon='close', on_click=lambda r=relation: editor.delete_relation(r.id)).props('flat round dense size=sm')

    with menu_card:
        render_menu()
    viewer.relations.set_on_state_change(lambda _: render_menu.refresh())

    # --- Toolbar ---

    async def handle_dataset_change(e):
        logger.info(f"Switching to dataset {viewer.datasets[e.value].name}")
        await viewer.switch_dataset(e.value)

    async def handle_layout_mode(e):
        await viewer.set_layout_mode(e.value)

    with ui.row().classes('fixed left-4 top-4 z-10 items-center gap-3 bg-white/90 rounded shadow px-3 py-2'):
        ui.select({i: d.name for i, d in enumerate(viewer.datasets)}, value=viewer.current_index,
                  on_change=handle_dataset_change).props('dense outlined').classes('w-56')
        ui.switch('Hover highlight', value=viewer.highlight.hover_mode,
                  on_change=lambda e: viewer.set_hover_mode(e.value)).props('dense')
        ui.toggle(list(LAYOUT_MODES), value=viewer.config['layout']['mode'],
                  on_change=handle_layout_mode).props('dense')
        ui.button(icon='center_focus_strong', on_click=viewer.fit_view).props('flat dense round').tooltip('Reset graph position')
        ui.button(icon='restart_alt', on_click=viewer.reset_layout).props('flat dense round').tooltip('Reset graph layout')

    ui.context.client.on_disconnect(viewer.teardown)

    await ui.context.client.connected()
    width, height = await ui.run_javascript('[window.innerWidth, window.innerHeight]')
    surface.set_dimensions(width, height)
    await viewer.load()


if __name__ in {"__main__", "__mp_main__"}:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    ui.run(
        title='Graph Explorer',
        port=8081,
        reload=not getattr(sys, 'frozen', False),
    )
